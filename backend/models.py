from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash
import logging
from shared.models import Base, Citizen

logger = logging.getLogger(__name__)
db = SQLAlchemy(model_class=Base)


def _default_clause(column, dialect):
    """Render a column's server default for an ALTER TABLE statement."""
    if column.server_default is None:
        return ''
    arg = column.server_default.arg
    if isinstance(arg, str):
        return " DEFAULT '{}'".format(arg.replace("'", "''"))
    return f" DEFAULT {arg.compile(dialect=dialect)}"


def ensure_schema():
    """Create missing tables and add model columns missing from existing ones.

    Databases created by older releases lack columns that were added later
    (citizen admin flag, property situation, owner document slots, edit
    tracking). Those are added in place; nothing is ever dropped.

    Returns:
        list: ``table.column`` names that were added
    """
    logger.info("Ensuring database schema")
    db.create_all()

    engine = db.engine
    inspector = inspect(engine)
    preparer = engine.dialect.identifier_preparer
    added = []

    with engine.begin() as conn:
        for table in Base.metadata.sorted_tables:
            existing = {col['name'] for col in inspector.get_columns(table.name)}
            for column in table.columns:
                if column.name in existing:
                    continue
                column_type = column.type.compile(dialect=engine.dialect)
                ddl = (f"ALTER TABLE {preparer.quote(table.name)} "
                       f"ADD COLUMN {preparer.quote(column.name)} {column_type}"
                       f"{_default_clause(column, engine.dialect)}")
                try:
                    conn.execute(text(ddl))
                except SQLAlchemyError as e:
                    logger.error(f"Failed to add column {table.name}.{column.name}: {e}", exc_info=True)
                    raise
                added.append(f"{table.name}.{column.name}")
                logger.info(f"Added {column.name} column to {table.name}")

    if not added:
        logger.debug("Database schema already up to date")
    return added


def ensure_admin_user(email, password, name='Admin', ward='admin'):
    """Make sure the bootstrap administrator exists and can log in.

    Creates the account when missing, promotes an existing account to
    admin, and replaces a plaintext stored password with a hash.

    Returns:
        Citizen: The administrator record
    """
    admin = Citizen.query.filter_by(email=email).first()
    if admin is None:
        admin = Citizen(
            name=name,
            email=email,
            password_hash=generate_password_hash(password),
            ward=ward,
            is_admin=True,
        )
        db.session.add(admin)
        db.session.commit()
        logger.info("Created bootstrap admin user")
        return admin

    changed = False
    if not admin.is_admin:
        admin.is_admin = True
        changed = True
        logger.info("Promoted existing user to admin")
    if admin.password_hash == password:
        admin.password_hash = generate_password_hash(password)
        changed = True
        logger.info("Replaced plaintext admin password with hashed password")
    if changed:
        db.session.commit()
    return admin
