from app.models.customer import Customer
from app.models.renewal import Renewal

__all__ = ["Customer", "Renewal"]
