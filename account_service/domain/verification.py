"""Signup and email verification lifecycle (Pending -> Verified)."""

from __future__ import annotations

import logging
from urllib.parse import quote, urlencode

import jwt

from .account import Account, parse_account_id
from .contracts import AccountStore, CreateAccountInput, EmailMessage, NewAccount, normalise_email
from .errors import (
    AccountNotFoundError,
    AlreadyVerifiedError,
    EmailDeliveryError,
    InvalidVerificationTokenError,
)
from ..notifications.email import (
    ACCOUNT_VERIFIED_SUBJECT,
    ACCOUNT_VERIFIED_TEMPLATE,
    VERIFICATION_REQUESTED_SUBJECT,
    VERIFICATION_REQUESTED_TEMPLATE,
    EmailSender,
)
from ..security.passwords import PasswordHasher
from ..security.tokens import VERIFICATION_TOKEN, TokenIssuer

logger = logging.getLogger(__name__)


class VerificationFlow:
    """Create pending accounts and redeem their verification exactly once.

    Emails sent by this flow are best-effort: a delivery failure is logged and
    never undoes the account write that preceded it.
    """

    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        email_sender: EmailSender,
        verification_base_url: str,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        self._email_sender = email_sender
        self._verification_base_url = verification_base_url.rstrip("/")

    def create(self, payload: CreateAccountInput) -> tuple[Account, str]:
        """Persist a pending account and email its verification link.

        Returns the stored account and the signed verification token.
        """
        account = self._store.create_account(
            NewAccount(
                username=payload.username,
                email=normalise_email(payload.email),
                password_hash=self._hasher.hash(payload.password),
            )
        )
        token = self._tokens.issue_verification(account.account_id)
        self._send(
            EmailMessage(
                to=account.email,
                subject=VERIFICATION_REQUESTED_SUBJECT,
                template=VERIFICATION_REQUESTED_TEMPLATE,
                data={
                    "URL": self.verification_url(account.account_id, token),
                    "name": account.username,
                    "email": account.email,
                },
            ),
            account.account_id,
        )
        logger.info("new account created with id %s", account.account_id)
        return account, token

    def redeem(self, account_id: str, token: str | None = None) -> Account:
        """Transition the account to Verified.

        Raises
        ------
        InvalidAccountIdError
            ``account_id`` is not a well-formed identifier.
        InvalidVerificationTokenError
            A token was supplied but is invalid or belongs to another account.
        AccountNotFoundError
            No account has this id.
        AlreadyVerifiedError
            The account was verified before this call; nothing is changed.
        """
        account_id = parse_account_id(account_id)
        if token is not None:
            self._check_token(account_id, token)

        account = self._store.mark_verified(account_id)
        if account is None:
            if self._store.get_account(account_id) is None:
                raise AccountNotFoundError()
            raise AlreadyVerifiedError()

        self._send(
            EmailMessage(
                to=account.email,
                subject=ACCOUNT_VERIFIED_SUBJECT,
                template=ACCOUNT_VERIFIED_TEMPLATE,
                data={"name": account.username, "email": account.email},
            ),
            account.account_id,
        )
        logger.info("account %s verified", account.account_id)
        return account

    def verification_url(self, account_id: str, token: str) -> str:
        query = urlencode({"token": token})
        return f"{self._verification_base_url}/{quote(account_id, safe='')}?{query}"

    def _check_token(self, account_id: str, token: str) -> None:
        try:
            claims = self._tokens.decode(token, purpose=VERIFICATION_TOKEN)
        except jwt.PyJWTError as exc:
            raise InvalidVerificationTokenError() from exc
        if claims["sub"] != account_id:
            raise InvalidVerificationTokenError()

    def _send(self, message: EmailMessage, account_id: str) -> None:
        try:
            self._email_sender.send(message)
        except EmailDeliveryError as exc:
            logger.warning(
                "could not send %s email for account %s: %s",
                message.template,
                account_id,
                exc,
            )
