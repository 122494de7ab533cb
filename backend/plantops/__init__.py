"""PlantOps manufacturing ERP backend"""
__version__ = "1.0.0"
