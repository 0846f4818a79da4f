from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .client import Client
from .specialty import Specialty
from .service import Service
from .professional import Professional
from .customer import Customer
from .availability import ProfessionalAvailability
from .appointment import Appointment
