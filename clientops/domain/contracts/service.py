"""Contract reminder service - signature reminder series for sent contracts"""

import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models import Contract, ContractSignatureLog
from ...scheduler.clock import utcnow
from ...scheduler.escalation import CONTRACT_REMINDER_TIERS, series_from_tiers
from ..reminders.kinds import ContractReminderKind
from ..reminders.state_machine import ReminderStateMachine

logger = logging.getLogger(__name__)


class ContractReminderService:
    def __init__(self, kind: Optional[ContractReminderKind] = None):
        self.reminders = ReminderStateMachine(kind or ContractReminderKind())

    @staticmethod
    def get_contract(db: Session, contract_id: int) -> Contract:
        contract = db.query(Contract).filter(Contract.id == contract_id).first()
        if not contract:
            raise NotFoundError("Contract", contract_id)
        return contract

    def send_for_signature(self, db: Session, contract_id: int, now: Optional[datetime] = None) -> Contract:
        """
        Issue a signature token, mark the contract sent and schedule the
        initial/followup/final reminders from today.
        """
        now = now or utcnow()
        contract = self.get_contract(db, contract_id)
        if contract.signed_at is not None:
            logger.warning(f"⚠️ Contract {contract_id} already signed - not resending")
            return contract

        if not contract.signature_token:
            contract.signature_token = secrets.token_urlsafe(32)
        contract.status = "sent"
        contract.sent_at = now
        db.commit()

        self.schedule_contract_reminders(db, contract_id, now)
        db.refresh(contract)
        return contract

    def schedule_contract_reminders(self, db: Session, contract_id: int, now: Optional[datetime] = None) -> list:
        contract = self.get_contract(db, contract_id)
        anchor = (contract.sent_at or now or utcnow()).date()
        return self.reminders.schedule_series(
            db, contract.id, series_from_tiers(CONTRACT_REMINDER_TIERS), anchor=anchor
        )

    def cancel_contract_reminders(self, db: Session, contract_id: int, reason: str = "cancelled") -> int:
        return self.reminders.cancel_series(db, contract_id, reason)

    def mark_signed(self, db: Session, contract_id: int, signer_email: str, now: Optional[datetime] = None) -> Contract:
        now = now or utcnow()
        contract = self.get_contract(db, contract_id)
        contract.signed_at = now
        contract.status = "signed"
        db.add(
            ContractSignatureLog(
                contract_id=contract.id, action="signed", actor_email=signer_email, created_at=now
            )
        )
        db.commit()

        self.cancel_contract_reminders(db, contract_id, reason="signed")
        db.refresh(contract)
        logger.info(f"✅ Contract {contract_id} signed by {signer_email}")
        return contract

    async def process_reminders(self, db: Session, sender, now: Optional[datetime] = None) -> dict:
        return await self.reminders.run_pass(db, sender, now)
