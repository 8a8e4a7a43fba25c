from token_purchase_service.app.db.base import Base
from token_purchase_service.app.db.session import engine

# force import models so SQLAlchemy knows them
from token_purchase_service.app.models.transaction import Transaction  # noqa

print("Creating tables...")
Base.metadata.create_all(bind=engine)
print("Done.")
