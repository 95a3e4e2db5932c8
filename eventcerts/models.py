from .app import db


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    venue = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, server_default=db.func.now())


class CertificateLayout(db.Model):
    """Partial layout JSON authored for an event; merged onto defaults at render."""

    __tablename__ = "certificate_layouts"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer,
        db.ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    layout = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )


class EventCounter(db.Model):
    __tablename__ = "event_counters"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, nullable=False, unique=True)
    current_count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )


class Certificate(db.Model):
    __tablename__ = "certificates"

    id = db.Column(db.Integer, primary_key=True)
    certificate_number = db.Column(db.String(64), nullable=False, unique=True)
    event_id = db.Column(db.Integer, nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    participant_name = db.Column(db.String(255), nullable=False)
    event_title = db.Column(db.String(255))
    completion_date = db.Column(db.Date)
    pdf_url = db.Column(db.String(512))
    png_url = db.Column(db.String(512))
    issued_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.UniqueConstraint(
            "event_id",
            "participant_name",
            name="uix_certificate_event_participant",
        ),
    )

    def public_fields(self) -> dict:
        return {
            "certificate_number": self.certificate_number,
            "participant_name": self.participant_name,
            "event_id": self.event_id,
            "event_title": self.event_title,
            "completion_date": self.completion_date.isoformat()
            if self.completion_date
            else None,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
            "pdf_url": self.pdf_url,
            "png_url": self.png_url,
        }
