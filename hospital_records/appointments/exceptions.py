from ..exceptions import ResourceNotFoundException


class AppointmentNotFoundException(ResourceNotFoundException):
    def __init__(self, detail: str = "Appointment not found"):
        super().__init__(detail)
