from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import DBAPIError, IntegrityError

from ..app import db
from ..models import Certificate, CertificateLayout, Event, EventCounter
from ..services.certificates_pdf import render_pdf
from ..services.certificates_png import render_png
from .assets import AssetFetcher
from .certificates_fonts import FontResolver
from .certificates_layout import LayoutConfig, resolve_layout
from .certificates_plan import RenderedCertificate, build_plan
from .certificates_text import CertificateData, coerce_date
from .errors import CertificateNumberConflict, StorageUnavailableError
from .storage import build_public_url, certificate_rel_path, write_certificate_artifact

EXTENSION_KEY = "eventcerts"


@dataclass(frozen=True)
class IssuedCertificate:
    record: Certificate
    pdf: RenderedCertificate
    png: RenderedCertificate


def normalize_participant_name(name: str | None) -> str:
    if name is not None and not isinstance(name, str):
        raise ValueError("Participant name must be text")
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Participant name required for certificate")
    return cleaned


def format_certificate_number(prefix: str, counter: int) -> str:
    return f"{prefix}-{counter:03d}"


def event_prefix(layout: LayoutConfig, event_id: int) -> str:
    """Configured prefix, or ``CERT{event_id}`` when the layout sets none."""
    return layout.cert_id_config.prefix or f"CERT{event_id}"


def find_certificate(event_id: int, participant_name: str) -> Certificate | None:
    return (
        db.session.query(Certificate)
        .filter_by(event_id=event_id, participant_name=participant_name)
        .one_or_none()
    )


def load_event_layout(event_id: int) -> LayoutConfig:
    row = db.session.query(CertificateLayout).filter_by(event_id=event_id).one_or_none()
    return resolve_layout(row.layout if row else None)


def _increment_counter(event_id: int) -> int:
    """Bump the event counter in one statement and return the new value.

    Runs inside the caller's transaction, so a rollback also returns the value.
    """
    dialect = db.session.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert
        stmt = (
            insert(EventCounter)
            .values(event_id=event_id, current_count=1)
            .on_conflict_do_update(
                index_elements=["event_id"],
                set_={
                    "current_count": EventCounter.current_count + 1,
                    "updated_at": db.func.now(),
                },
            )
            .returning(EventCounter.current_count)
        )
        return db.session.execute(stmt).scalar_one()
    stmt = (
        update(EventCounter)
        .where(EventCounter.event_id == event_id)
        .values(current_count=EventCounter.current_count + 1)
        .returning(EventCounter.current_count)
    )
    value = db.session.execute(stmt).scalar_one_or_none()
    if value is None:
        db.session.add(EventCounter(event_id=event_id, current_count=1))
        db.session.flush()
        value = 1
    return value


def _is_cert_number_conflict(error: IntegrityError) -> bool:
    if not isinstance(error, IntegrityError):
        return False
    details: str = ""
    if getattr(error, "orig", None) is not None:
        details = str(error.orig)
    if not details:
        details = str(error)
    return "certificate_number" in details.lower()


def issue_certificate(
    event_id: int,
    user_id: str,
    participant_name: str,
    event_title: str | None = None,
    completion_date: date | str | None = None,
    *,
    prefix: str | None = None,
) -> Certificate:
    """Return the certificate for (event, participant), numbering it if new.

    An existing record is returned untouched. A caller that loses the insert
    race gets the winner's record. Its counter increment rolls back with the
    failed insert, so committed numbers stay gap-free.
    """
    name = normalize_participant_name(participant_name)
    completion = coerce_date(completion_date)
    existing = find_certificate(event_id, name)
    if existing is not None:
        current_app.logger.info(
            "[CERT-ISSUE] event=%s name=%s existing=%s",
            event_id,
            name,
            existing.certificate_number,
        )
        return existing
    if prefix is None:
        prefix = event_prefix(load_event_layout(event_id), event_id)

    certificate_number = None
    try:
        counter = _increment_counter(event_id)
        certificate_number = format_certificate_number(prefix, counter)
        cert = Certificate(
            certificate_number=certificate_number,
            event_id=event_id,
            user_id=str(user_id),
            participant_name=name,
            event_title=event_title,
            completion_date=completion,
        )
        db.session.add(cert)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        winner = find_certificate(event_id, name)
        if winner is not None:
            current_app.logger.info(
                "[CERT-ISSUE] event=%s name=%s lost race; rolled back=%s kept=%s",
                event_id,
                name,
                certificate_number,
                winner.certificate_number,
            )
            return winner
        if _is_cert_number_conflict(exc):
            current_app.logger.warning(
                "[CERT-ISSUE] event=%s number=%s already issued elsewhere",
                event_id,
                certificate_number,
            )
            raise CertificateNumberConflict(
                f"Certificate number {certificate_number} belongs to another event; "
                "use a distinct prefix"
            ) from exc
        raise
    except DBAPIError as exc:
        db.session.rollback()
        current_app.logger.exception(
            "[CERT-ISSUE] event=%s name=%s storage unavailable", event_id, name
        )
        raise StorageUnavailableError("Certificate store unavailable; retry") from exc

    current_app.logger.info(
        "[CERT-ISSUE] event=%s user=%s name=%s number=%s",
        event_id,
        user_id,
        name,
        certificate_number,
    )
    return cert


def get_asset_fetcher() -> AssetFetcher:
    return current_app.extensions[EXTENSION_KEY]["fetcher"]


def get_font_resolver() -> FontResolver:
    return current_app.extensions[EXTENSION_KEY]["fonts"]


def render_certificate(
    layout: LayoutConfig, data: CertificateData, certificate_number: str
) -> tuple[RenderedCertificate, RenderedCertificate]:
    plan = build_plan(
        layout,
        data,
        certificate_number,
        fonts=get_font_resolver(),
        fetcher=get_asset_fetcher(),
        verify_base_url=current_app.config.get("VERIFY_BASE_URL"),
    )
    with ThreadPoolExecutor(max_workers=2) as pool:
        pdf_future = pool.submit(render_pdf, plan)
        png_future = pool.submit(render_png, plan)
        return pdf_future.result(), png_future.result()


def issue_and_render(
    event_id: int,
    user_id: str,
    participant_name: str,
    event_title: str | None = None,
    completion_date: date | str | None = None,
) -> IssuedCertificate:
    layout = load_event_layout(event_id)
    event = db.session.get(Event, event_id)
    title = event_title or (event.title if event else None)
    if not title:
        raise ValueError("Event title required for certificate")
    completion = coerce_date(completion_date)
    if completion_date and completion is None:
        raise ValueError(f"Unrecognised completion date {completion_date!r}")
    if completion is None and event is not None:
        completion = event.end_date or event.start_date
    completion = completion or date.today()

    record = issue_certificate(
        event_id,
        user_id,
        participant_name,
        title,
        completion,
        prefix=event_prefix(layout, event_id),
    )
    data = CertificateData(
        participant_name=record.participant_name,
        event_title=record.event_title or title,
        completion_date=record.completion_date or completion,
        venue=event.venue if event else None,
    )
    pdf, png = render_certificate(layout, data, record.certificate_number)

    pdf_rel = certificate_rel_path(record.event_id, record.user_id, record.certificate_number, "pdf")
    png_rel = certificate_rel_path(record.event_id, record.user_id, record.certificate_number, "png")
    write_certificate_artifact(pdf_rel, pdf.data)
    write_certificate_artifact(png_rel, png.data)
    if not record.pdf_url or not record.png_url:
        record.pdf_url = record.pdf_url or build_public_url(pdf_rel)
        record.png_url = record.png_url or build_public_url(png_rel)
        db.session.commit()

    current_app.logger.info(
        "[CERT] event=%s user=%s number=%s path=%s",
        record.event_id,
        record.user_id,
        record.certificate_number,
        pdf_rel,
    )
    return IssuedCertificate(record=record, pdf=pdf, png=png)


def verify_certificate(certificate_number: str) -> dict | None:
    number = (certificate_number or "").strip()
    if not number:
        return None
    cert = (
        db.session.query(Certificate)
        .filter(Certificate.certificate_number == number)
        .one_or_none()
    )
    if cert is None:
        return None
    return cert.public_fields()
