from pharmacy_api.models.user import User, Admin
from pharmacy_api.models.drug import Drug
from pharmacy_api.models.cart import CartItem
from pharmacy_api.models.order import Order, OrderItem, OrderStatus, PaymentMethod
from pharmacy_api.models.prescription import Prescription
from pharmacy_api.models.doctor import Doctor
from pharmacy_api.models.medical_report import MedicalReport
from pharmacy_api.models.medical_prescription import MedicalPrescription, PrescriptionDrug
from pharmacy_api.models.appointment import Appointment
from pharmacy_api.models.allergy import Allergy
from pharmacy_api.models.chronic_condition import ChronicCondition
from pharmacy_api.models.vital_sign import VitalSign
from pharmacy_api.models.medical_history import MedicalHistorySummary

__all__ = [
    "User", "Admin", "Drug", "CartItem", "Order", "OrderItem", "OrderStatus", "PaymentMethod",
    "Prescription", "Doctor", "MedicalReport", "MedicalPrescription", "PrescriptionDrug",
    "Appointment", "Allergy", "ChronicCondition", "VitalSign", "MedicalHistorySummary",
]
