"""
Declarative base for all PlantOps models
"""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
