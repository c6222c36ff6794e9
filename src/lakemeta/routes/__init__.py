from .main import main_bp
from .storage import storage_bp
from .parquet import parquet_bp
from .conversion import conversion_bp
from .tables import tables_bp

BLUEPRINTS = (main_bp, storage_bp, parquet_bp, conversion_bp, tables_bp)
