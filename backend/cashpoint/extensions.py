# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()

# compare_type: Numeric(10, 2) precision/scale drift must show up in autogenerate.
# render_as_batch: SQLite cannot ALTER constraints in place.
migrate = Migrate(compare_type=True, render_as_batch=True)
