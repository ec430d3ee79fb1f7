from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Boolean, Text, DateTime, Enum, Index, text
from sqlalchemy.orm import declarative_base
from shared.enums import SurveyStatus

Base = declarative_base()

# Surveys are filed by municipal wards in India; timestamps are kept in IST.
from zoneinfo import ZoneInfo
APP_TIMEZONE = ZoneInfo('Asia/Kolkata')

# Legacy wide-table layout: owners and documents live in numbered slots.
MAX_OWNERS = 10
MAX_DOCUMENTS = 10
OWNER_SLOT_KINDS = ('image', 'details', 'aadhaar_doc', 'pan_doc', 'other_doc')


def now():
    """Return current datetime in application timezone (IST, timezone-aware).

    Note: SQLite strips the timezone on storage, so stored values are
    naive IST wall-clock times.
    """
    return datetime.now(APP_TIMEZONE)


class Citizen(Base):
    __tablename__ = 'citizens'
    id = Column(Integer, primary_key=True, nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False, server_default="")
    ward = Column(String(50), server_default="")
    is_admin = Column(Boolean, default=False, nullable=False, server_default='0')
    created_at = Column(DateTime, default=now)


class Survey(Base):
    __tablename__ = 'surveys'
    id = Column(Integer, primary_key=True, nullable=False)
    citizen_email = Column(String(255), nullable=False, index=True)
    mobile = Column(String(20), server_default="")
    name = Column(String(255), nullable=False)
    ward = Column(String(50), server_default="")
    road = Column(String(255), server_default="")
    property_type = Column(String(100), server_default="")
    ownership_type = Column(String(255), default='Single Owner', server_default='Single Owner')
    number_of_floors = Column(Integer)
    plot_area = Column(Float)
    built_up_area = Column(Float)
    geo_lat = Column(Float)
    geo_lng = Column(Float)
    # Comma separated URLs (or bare filenames for rows predating cloud storage)
    images = Column(Text, server_default="")
    property_situation = Column(String(100), default='', server_default='')
    status = Column(Enum(SurveyStatus), default=SurveyStatus.PENDING, nullable=False,
                    server_default=text("'PENDING'"))
    created_at = Column(DateTime, default=now)
    is_edited = Column(Boolean, default=False, nullable=False, server_default='0')
    edited_at = Column(DateTime, nullable=True)

    @staticmethod
    def document_columns():
        return [f'document{i}' for i in range(1, MAX_DOCUMENTS + 1)]

    @staticmethod
    def owner_columns(kind):
        """Names of the ten owner slot columns of one kind, e.g. 'pan_doc'."""
        if kind not in OWNER_SLOT_KINDS:
            raise ValueError(f"Unknown owner slot kind: {kind}")
        return [f'owner{i}_{kind}' for i in range(1, MAX_OWNERS + 1)]

    def slot_values(self, columns):
        """Non-empty stripped values of the given slot columns, in slot order."""
        values = []
        for column in columns:
            value = getattr(self, column)
            if value and str(value).strip():
                values.append(str(value).strip())
        return values

    def fill_slots(self, columns, values):
        """Write values into consecutive slots and blank the remainder."""
        for index, column in enumerate(columns):
            setattr(self, column, values[index] if index < len(values) else '')


for _i in range(1, MAX_DOCUMENTS + 1):
    setattr(Survey, f'document{_i}', Column(String(1000), server_default=""))

for _i in range(1, MAX_OWNERS + 1):
    setattr(Survey, f'owner{_i}_image', Column(String(1000), server_default=""))
    setattr(Survey, f'owner{_i}_details', Column(Text, server_default=""))
    setattr(Survey, f'owner{_i}_aadhaar_doc', Column(String(1000), server_default=""))
    setattr(Survey, f'owner{_i}_pan_doc', Column(String(1000), server_default=""))
    setattr(Survey, f'owner{_i}_other_doc', Column(String(1000), server_default=""))

Index('idx_survey_created_at', Survey.created_at)
Index('idx_survey_status', Survey.status)
