# Life Connections Database Models
from lifeconnections.models.connection import LifeConnection

__all__ = [
    "LifeConnection",
]
