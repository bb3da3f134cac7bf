"""
MJML Email Templates
Reminder and notification emails sent by the scheduler, written in MJML for
responsive, cross-client rendering
"""

from typing import NamedTuple, Optional

from .config import BUSINESS_NAME

# Teal/Slate color scheme
THEME = {
    "primary": "#14b8a6",
    "primary_dark": "#0d9488",
    "primary_light": "#ccfbf1",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#14b8a6",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


class EmailContent(NamedTuple):
    subject: str
    text: str
    mjml: str


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 0 40px">
          <mj-column>
            <mj-text font-size="18px" font-weight="700" color="{THEME['primary_dark']}" padding="0 0 24px 0">
              {BUSINESS_NAME}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 32px 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              © {BUSINESS_NAME}. All rights reserved.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _urgency_block(urgency: str) -> str:
    if not urgency:
        return ""
    return f"""
    <mj-text container-background-color="#fff3cd" border-left="4px solid {THEME['warning']}" padding="15px">
      <strong>{urgency}</strong>
    </mj-text>
    """


def _plain_text(greeting_name: str, lines: list[str], link_label: str, link_url: str) -> str:
    body = "\n\n".join(line for line in lines if line)
    return f"Hi {greeting_name},\n\n{body}\n\n{link_label}: {link_url}\n\nBest regards,\n{BUSINESS_NAME}\n"


# ============================================
# Invoice reminders
# ============================================

INVOICE_REMINDER_COPY = {
    "upcoming": ("Payment Reminder: Invoice #{number} Due Soon", "Your invoice #{number} for {amount} is due on {due_date}.", ""),
    "due": ("Payment Due Today: Invoice #{number}", "Your invoice #{number} for {amount} is due today.", "Please submit payment today to avoid late fees."),
    "overdue_3": ("Payment Overdue: Invoice #{number}", "Your invoice #{number} for {amount} is now 3 days overdue.", "Please submit payment as soon as possible."),
    "overdue_7": ("URGENT: Payment Overdue - Invoice #{number}", "Your invoice #{number} for {amount} is now 7 days overdue.", "Immediate payment is required to avoid service interruption."),
    "overdue_14": ("FINAL NOTICE: Invoice #{number} Overdue", "Your invoice #{number} for {amount} is now 14 days overdue.", "This is a final reminder before collection action may be taken."),
    "overdue_30": ("COLLECTION NOTICE: Invoice #{number}", "Your invoice #{number} for {amount} is now 30 days overdue.", "Please contact us immediately to discuss payment arrangements."),
}
DEFAULT_INVOICE_COPY = ("Payment Reminder: Invoice #{number}", "Your invoice #{number} for {amount} is pending payment.", "")


def invoice_reminder_email(
    reminder_kind: str,
    client_name: str,
    invoice_number: str,
    amount_due: float,
    due_date: str,
    portal_url: str,
) -> EmailContent:
    """Payment reminder for one tier of the invoice reminder series"""
    subject_tpl, message_tpl, urgency = INVOICE_REMINDER_COPY.get(reminder_kind, DEFAULT_INVOICE_COPY)
    values = {"number": invoice_number, "amount": f"${amount_due:,.2f}", "due_date": due_date}
    subject = subject_tpl.format(**values)
    message = message_tpl.format(**values)
    disregard = "If you have already submitted payment, please disregard this message."

    content = f"""
    <mj-text>
      Hi {client_name},
    </mj-text>

    <mj-text>
      {message}
    </mj-text>

    {_urgency_block(urgency)}

    <mj-text align="center" font-size="32px" font-weight="700" color="{THEME['text_primary']}" padding="20px 0">
      ${amount_due:,.2f}
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Invoice: {invoice_number}<br/>Due Date: {due_date}
    </mj-text>

    <mj-text font-size="13px" color="{THEME['text_muted']}">
      {disregard}
    </mj-text>
    """
    mjml = get_base_template(subject, message, content, cta_url=portal_url, cta_label="View Invoice")
    text = _plain_text(client_name, [message, urgency, disregard], "View your invoice", portal_url)
    return EmailContent(subject, text, mjml)


# ============================================
# Contract signature reminders
# ============================================

CONTRACT_REMINDER_COPY = {
    "initial": ("Contract Ready for Signature: {project}", 'Your contract for "{project}" is ready for your signature.', ""),
    "followup_3": ("Reminder: Contract Awaiting Signature - {project}", 'This is a friendly reminder that your contract for "{project}" is still awaiting your signature.', "Please sign at your earliest convenience so we can get started on your project."),
    "followup_7": ("Action Required: Contract Signature Needed - {project}", 'Your contract for "{project}" has been awaiting your signature for 7 days.', "Please review and sign the contract to proceed with your project."),
    "final_14": ("Final Reminder: Contract Signature Required - {project}", 'This is a final reminder that your contract for "{project}" needs to be signed.', "The signature link will expire soon. Please sign today to avoid delays."),
}
DEFAULT_CONTRACT_COPY = ("Contract Awaiting Signature: {project}", 'Your contract for "{project}" is ready for your signature.', "")


def contract_reminder_email(
    reminder_kind: str, client_name: str, project_name: str, signing_url: str
) -> EmailContent:
    subject_tpl, message_tpl, urgency = CONTRACT_REMINDER_COPY.get(reminder_kind, DEFAULT_CONTRACT_COPY)
    subject = subject_tpl.format(project=project_name)
    message = message_tpl.format(project=project_name)

    content = f"""
    <mj-text>
      Hi {client_name},
    </mj-text>

    <mj-text>
      {message}
    </mj-text>

    {_urgency_block(urgency)}
    """
    mjml = get_base_template(subject, message, content, cta_url=signing_url, cta_label="Review & Sign Contract")
    text = _plain_text(client_name, [message, urgency], "Review and sign", signing_url)
    return EmailContent(subject, text, mjml)


# ============================================
# Welcome sequence
# ============================================

# email_type -> (subject, heading, paragraphs, cta label, portal anchor)
WELCOME_SEQUENCE_COPY = {
    "welcome": (
        "Welcome to {business}!",
        "Welcome aboard",
        ["We're thrilled to have {company} as a client. Your client portal is now ready and waiting for you."],
        "Open Your Portal",
        "",
    ),
    "getting_started": (
        "Getting Started with Your Client Portal",
        "Getting started",
        [
            "Here's a quick overview of what you can do in your client portal:",
            "Track project progress, review and approve deliverables, view and pay invoices, and message us directly.",
        ],
        "Explore the Portal",
        "#dashboard",
    ),
    "tips": (
        "Tips for Working Together",
        "Tips for a smooth project",
        [
            "Respond to messages promptly. This helps keep the project on track.",
            "Review deliverables as they arrive so feedback lands early.",
        ],
        "View Your Project",
        "#projects",
    ),
    "check_in": (
        "How's Everything Going?",
        "Checking in",
        [
            "It's been a week since you set up your portal. We wanted to check in and make sure everything is going smoothly.",
            "If you have any questions, reach out through the messaging system in your portal.",
        ],
        "Send Us a Message",
        "#messages",
    ),
}
DEFAULT_WELCOME_COPY = (
    "A Message from {business}",
    "Hello",
    ["We wanted to reach out and see how things are going."],
    "Open Your Portal",
    "",
)


def welcome_sequence_email(
    email_type: str, client_name: str, company_name: Optional[str], portal_url: str
) -> EmailContent:
    subject_tpl, heading, paragraphs, cta_label, anchor = WELCOME_SEQUENCE_COPY.get(
        email_type, DEFAULT_WELCOME_COPY
    )
    values = {"business": BUSINESS_NAME, "company": company_name or "you"}
    subject = subject_tpl.format(**values)
    lines = [paragraph.format(**values) for paragraph in paragraphs]
    cta_url = f"{portal_url}{anchor}"

    content = f"""
    <mj-text>
      Hi {client_name},
    </mj-text>
    """ + "".join(
        f"""
    <mj-text>
      {line}
    </mj-text>
    """
        for line in lines
    )
    mjml = get_base_template(heading, lines[0], content, cta_url=cta_url, cta_label=cta_label)
    text = _plain_text(client_name, lines, cta_label, cta_url)
    return EmailContent(subject, text, mjml)


# ============================================
# Approval workflow
# ============================================


def approval_reminder_email(
    entity_type: str, entity_id: int, reminder_number: int, days_pending: int, review_url: str
) -> EmailContent:
    entity_label = entity_type.replace("_", " ")
    subject = f"Reminder: Approval Needed for {entity_label.title()} #{entity_id}"
    message = (
        f"A {entity_label} has been waiting for your approval for {days_pending} "
        f"day{'s' if days_pending != 1 else ''}."
    )

    content = f"""
    <mj-text>
      Hi,
    </mj-text>

    <mj-text>
      {message}
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Reminder {reminder_number} · {entity_label.title()} #{entity_id}
    </mj-text>
    """
    mjml = get_base_template(subject, message, content, cta_url=review_url, cta_label="Review Request")
    text = _plain_text("there", [message], "Review the request", review_url)
    return EmailContent(subject, text, mjml)


def approval_stalled_email(
    entity_type: str, entity_id: int, approver_email: str, days_pending: int, review_url: str
) -> EmailContent:
    """Admin escalation for an approval with no decision"""
    entity_label = entity_type.replace("_", " ")
    subject = f"Stalled Approval: {entity_label.title()} #{entity_id}"
    message = (
        f"The approval request for {entity_label} #{entity_id} assigned to {approver_email} "
        f"has had no decision for {days_pending} days."
    )
    urgency = "Follow up with the approver or reassign the request."

    content = f"""
    <mj-text>
      {message}
    </mj-text>

    {_urgency_block(urgency)}
    """
    mjml = get_base_template(subject, message, content, cta_url=review_url, cta_label="Open Request")
    text = _plain_text("admin", [message, urgency], "Open the request", review_url)
    return EmailContent(subject, text, mjml)
