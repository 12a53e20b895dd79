"""Repository port and its adapters."""

from leadintel.repositories.base import LeadIntelRepository
from leadintel.repositories.memory import InMemoryRepository
from leadintel.repositories.sql import SQLAlchemyRepository
