from .impl import Base, Dependent

__all__ = ["Base", "Dependent"]
