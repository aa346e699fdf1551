from __future__ import annotations

from dataclasses import dataclass
from html import escape

from ..config import APPLICATION_STATUS_APPROVED, SIGNATURE_TEAM


@dataclass(frozen=True)
class StatusNotice:
    """Everything an adopter needs to hear about a decided application."""

    application_id: str
    status: str
    applicant_name: str
    dog_name: str
    shelter: str
    email: str | None = None
    phone: str | None = None

    @property
    def approved(self) -> bool:
        return self.status == APPLICATION_STATUS_APPROVED

    def as_payload(self) -> dict:
        return {
            "applicationId": self.application_id,
            "status": self.status,
            "applicantName": self.applicant_name,
            "dogName": self.dog_name,
            "shelter": self.shelter,
            "email": self.email,
            "phone": self.phone,
        }

    @classmethod
    def from_payload(cls, payload: dict, dog_name: str | None = None) -> "StatusNotice":
        return cls(
            application_id=str(payload.get("applicationId") or ""),
            status=str(payload.get("status") or ""),
            applicant_name=str(payload.get("applicantName") or "there"),
            dog_name=dog_name or str(payload.get("dogName") or ""),
            shelter=str(payload.get("shelter") or ""),
            email=payload.get("email"),
            phone=payload.get("phone"),
        )


def subject(notice: StatusNotice) -> str:
    if notice.approved:
        return f"Your adoption application for {notice.dog_name} has been approved!"
    return f"Application Update for {notice.dog_name}"


def text_body(notice: StatusNotice) -> str:
    if notice.approved:
        lines = [
            f"Congratulations {notice.applicant_name}!",
            "",
            f"Great news! Your adoption application for {notice.dog_name} from "
            f"{notice.shelter} has been APPROVED!",
            "",
            "Next Steps:",
            "- The shelter will contact you directly within 24-48 hours",
            f"- They will arrange a meet-and-greet with {notice.dog_name}",
            "- Complete any remaining paperwork",
            "- Prepare your home for your new family member!",
            "",
            f"Thank you for choosing to adopt. {notice.dog_name} is lucky to have "
            "found such a caring family!",
        ]
    else:
        lines = [
            f"Hello {notice.applicant_name},",
            "",
            f"Thank you for your interest in adopting {notice.dog_name} from "
            f"{notice.shelter}.",
            "",
            "After careful consideration, we regret to inform you that your "
            "application was not selected at this time.",
            "",
            "Please don't be discouraged! There are many other dogs looking for "
            "loving homes. We encourage you to:",
            "- Browse other available dogs on our platform",
            "- Consider applying for other dogs that might be a great match",
            "- Keep checking back as new dogs are added regularly",
        ]
    lines.extend(["", "Best regards,", SIGNATURE_TEAM])
    return "\n".join(lines)


def html_body(notice: StatusNotice) -> str:
    name = escape(notice.applicant_name)
    dog = escape(notice.dog_name)
    shelter = escape(notice.shelter)
    if notice.approved:
        content = f"""
        <h2>Congratulations {name}!</h2>
        <p>Great news! Your adoption application for <strong>{dog}</strong> from
        <strong>{shelter}</strong> has been
        <span style="color:green;font-weight:bold;">APPROVED</span>!</p>
        <h3>Next Steps:</h3>
        <ul>
          <li>The shelter will contact you directly within 24-48 hours</li>
          <li>They will arrange a meet-and-greet with {dog}</li>
          <li>Complete any remaining paperwork</li>
          <li>Prepare your home for your new family member!</li>
        </ul>
        <p>Thank you for choosing to adopt. {dog} is lucky to have found such a caring family!</p>
        """
    else:
        content = f"""
        <h2>Hello {name},</h2>
        <p>Thank you for your interest in adopting <strong>{dog}</strong> from
        <strong>{shelter}</strong>.</p>
        <p>After careful consideration, we regret to inform you that your application
        was not selected at this time.</p>
        <p>Please don't be discouraged! There are many other dogs looking for loving homes.</p>
        <ul>
          <li>Browse other available dogs on our platform</li>
          <li>Consider applying for other dogs that might be a great match</li>
          <li>Keep checking back as new dogs are added regularly</li>
        </ul>
        """
    return f"""
    <html>
      <body style="font-family:Arial,Helvetica,sans-serif;max-width:640px;margin:0 auto;padding:10px;">
        {content}
        <p>Best regards,<br>{escape(SIGNATURE_TEAM)}</p>
      </body>
    </html>
    """


def sms_body(notice: StatusNotice) -> str:
    if notice.approved:
        return (
            f"GREAT NEWS {notice.applicant_name}! Your adoption application for "
            f"{notice.dog_name} from {notice.shelter} has been APPROVED! The shelter "
            f"will contact you within 24-48 hours. - {SIGNATURE_TEAM}"
        )
    return (
        f"Hello {notice.applicant_name}, thank you for your interest in "
        f"{notice.dog_name} from {notice.shelter}. Unfortunately, your application "
        f"was not selected this time. Please consider other available dogs. "
        f"- {SIGNATURE_TEAM}"
    )
