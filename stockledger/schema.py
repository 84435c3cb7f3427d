INVENTORY_TABLE = "Inventario"

# Base shape for new installs. Columns listed in INVENTORY_ADDED_COLUMNS are
# appended to older files by the migration step.
INVENTORY_SQL = r"""
CREATE TABLE IF NOT EXISTS Inventario (
  Id INTEGER PRIMARY KEY AUTOINCREMENT,
  Codigo TEXT NOT NULL,                  -- business key, one row per code
  Producto TEXT NOT NULL,
  Unidades INTEGER NOT NULL,
  Kilos REAL NOT NULL,
  FechaMasAntigua TEXT NOT NULL,         -- ISO date (yyyy-mm-dd)
  FechaMasNueva TEXT NOT NULL,           -- ISO date (yyyy-mm-dd)
  FechaVencimiento TEXT,
  Categoria TEXT,
  SubCategoria TEXT
);
"""

INVENTORY_ADDED_COLUMNS = [
    ("FechaVencimiento", "TEXT"),
    ("Categoria", "TEXT"),
    ("SubCategoria", "TEXT"),
]
