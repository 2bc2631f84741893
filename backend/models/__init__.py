from backend.models.blood import BloodResult

__all__ = [
    "BloodResult",
]
