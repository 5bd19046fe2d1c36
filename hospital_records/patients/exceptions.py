"""
Patient record exceptions.
"""
from ..exceptions import ConflictException, ResourceNotFoundException


class PatientNotFoundException(ResourceNotFoundException):
    def __init__(self, detail: str = "Patient not found"):
        super().__init__(detail)


class SubRecordNotFoundException(ResourceNotFoundException):
    """Raised when a prescription or lab report does not belong to the patient."""
    def __init__(self, kind: str):
        super().__init__(f"{kind} not found")


class DuplicatePatientCodeException(ConflictException):
    def __init__(self, detail: str = "Patient ID already exists"):
        super().__init__(detail)
