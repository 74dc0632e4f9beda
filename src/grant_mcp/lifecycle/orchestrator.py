"""Permission request lifecycle orchestrator.

States: Init -> SkeletonShown -> ContextResolving -> Interactive ->
Resolving -> Terminal (Approved | Rejected).

orchestrate() validates the request, shows a skeleton dialog with grant
disabled, resolves the context in the background, swaps in the real
content, applies user edits as they arrive, and on approval turns the
edited request into a signed delegation.
"""

import asyncio
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from ..accounts import AccountController
from ..audit import AuditLogger
from ..chain_metadata import ChainMetadataRegistry
from ..confirmation.dialog import DENIED_REASON, ConfirmationDialog, ConfirmationDialogFactory
from ..confirmation.ui import UiElement
from ..dispatch import HandlerRegistration, UserEventDispatcher, UserInputEvent, UserInputEventType
from ..errors import AdjustmentNotAllowedError, InvalidRequestError
from ..signing import ROOT_AUTHORITY, Delegation, encode_delegations
from .handlers import LifecycleOrchestrationHandlers
from .models import PermissionRequest, PermissionRequestResult
from .restrictions import RestrictionBuilder


@dataclass
class ConfirmationSession:
    """
    Runtime state of one confirmation.

    context and metadata are replaced wholesale on every change, never
    mutated. pending_edits holds edits that arrived before the context
    resolved (last value per element).
    """

    origin: str
    request: PermissionRequest
    dialog: ConfirmationDialog
    handlers: LifecycleOrchestrationHandlers
    context: Any = None
    metadata: Any = None
    granted_context: Any = None
    granted_request: Optional[PermissionRequest] = None
    pending_edits: Dict[str, Any] = field(default_factory=dict)

    @property
    def interface_id(self) -> Optional[str]:
        return self.dialog.interface_id

    @property
    def is_context_resolved(self) -> bool:
        return self.context is not None

    def render(self) -> UiElement:
        return self.handlers.create_confirmation_content(
            self.context, self.metadata, self.dialog.ui_state
        )

    async def capture_for_grant(self) -> bool:
        """Before-grant check: block while fields are invalid, else pin the context."""
        if not self.is_context_resolved:
            return False
        if self.handlers.has_validation_errors(self.metadata):
            logger.info(f"Grant blocked on interface {self.interface_id}: validation errors")
            return False
        self.granted_context = self.context
        return True


class PermissionRequestLifecycleOrchestrator:
    """
    Drives one permission request from raw input to a signed response.

    The dispatcher is shared by every concurrent request; each session is
    namespaced by its interface id.
    """

    def __init__(
        self,
        account_controller: AccountController,
        dialog_factory: ConfirmationDialogFactory,
        chain_registry: ChainMetadataRegistry,
        audit: Optional[AuditLogger] = None,
    ):
        self._accounts = account_controller
        self._dialog_factory = dialog_factory
        self._chains = chain_registry
        self._audit = audit

    @property
    def dispatcher(self) -> UserEventDispatcher:
        return self._dialog_factory.dispatcher

    async def orchestrate(
        self,
        origin: str,
        raw_request: Any,
        handlers: LifecycleOrchestrationHandlers,
    ) -> PermissionRequestResult:
        """
        Run the confirmation lifecycle for one request.

        Args:
            origin: Requesting site
            raw_request: Request in wire form
            handlers: Hooks for the request's permission type

        Returns:
            Approved result carrying the response, or a rejected result

        Raises:
            InvalidRequestError: If validation fails (no dialog is created)
            Exception: Context resolution failures propagate after the dialog is
                closed; account, restriction and signing failures propagate unmodified
        """
        request = handlers.validate_request(raw_request)
        chain = self._chains.get(request.chain_id)
        if request.expiry is None:
            raise InvalidRequestError("Expiry rule is required")

        dialog = self._dialog_factory.create_confirmation(
            ui=handlers.create_skeleton_confirmation_content(),
            is_grant_disabled=True,
        )
        session = ConfirmationSession(
            origin=origin, request=request, dialog=dialog, handlers=handlers
        )
        dialog.on_before_grant = session.capture_for_grant

        interface_id = await dialog.create_interface()
        logger.info(
            f"Confirmation {interface_id} opened for {request.permission.type} "
            f"from {origin} on chain {request.chain_id}"
        )
        if self._audit is not None:
            self._audit.log_requested(origin, request.permission.type, request.chain_id, interface_id)

        registrations = self._bind_edit_handlers(session)
        decision_task = asyncio.ensure_future(dialog.await_decision())
        context_task = asyncio.ensure_future(self._resolve_context(session))

        try:
            await asyncio.wait({decision_task, context_task}, return_when=asyncio.FIRST_COMPLETED)

            if context_task.done():
                error = context_task.exception()
                if error is not None:
                    logger.error(f"Context resolution failed for {interface_id}: {error}")
                    await dialog.close_with_error(str(error))
                    await asyncio.gather(decision_task, return_exceptions=True)
                    raise error
                context, metadata = context_task.result()
                await self._show_resolved_content(session, context, metadata)
            else:
                context_task.cancel()
                await asyncio.gather(context_task, return_exceptions=True)

            decision = await decision_task

            if not decision.is_confirmation_granted:
                reason = decision.reason or DENIED_REASON
                logger.info(f"Confirmation {interface_id} rejected: {reason}")
                self._audit_decision(session, approved=False, reason=reason)
                return PermissionRequestResult(approved=False, reason=reason)

            logger.info(f"Confirmation {interface_id} granted, resolving response")
            response = await self._resolve_response(session, chain)
            self._audit_decision(session, approved=True)
            return PermissionRequestResult(approved=True, response=response)

        except Exception as e:
            if self._audit is not None:
                self._audit.log_failure(origin, request.permission.type, interface_id, str(e))
            raise
        finally:
            for registration in registrations:
                registration.unbind()
            if not decision_task.done():
                decision_task.cancel()
            if not context_task.done():
                context_task.cancel()
            self.dispatcher.release_session(interface_id)

    # ========================================================================
    # Context resolution and rendering
    # ========================================================================

    async def _resolve_context(self, session: ConfirmationSession) -> Tuple[Any, Any]:
        context = await session.handlers.build_context(session.request)
        metadata = await session.handlers.derive_metadata(context)
        return context, metadata

    async def _show_resolved_content(self, session: ConfirmationSession, context: Any, metadata: Any) -> None:
        """
        Publish the resolved context, render it, then apply edits buffered while resolving.

        The context becomes visible to edit handlers only under the interface
        lock, so no edit can render ahead of the first content render.
        """
        async with self.dispatcher.serialized(session.interface_id):
            if session.dialog.is_resolved:
                return

            session.context, session.metadata = context, metadata
            await session.dialog.update_content(session.render(), is_grant_disabled=False)
            session.dialog.content_renderer = lambda ui_state: session.handlers.create_confirmation_content(
                session.context, session.metadata, ui_state
            )
            logger.info(f"Confirmation {session.interface_id} is interactive")

            if session.pending_edits:
                edits, session.pending_edits = session.pending_edits, {}
                logger.debug(
                    f"Applying {len(edits)} buffered edit(s) to confirmation {session.interface_id}"
                )
                context = session.context
                for element_name, value in edits.items():
                    context = session.handlers.apply_edit(context, element_name, value)
                await self._update_context(session, context)

    async def _update_context(self, session: ConfirmationSession, context: Any) -> None:
        metadata = await session.handlers.derive_metadata(context)
        session.context, session.metadata = context, metadata

        if session.dialog.is_resolved:
            logger.debug(f"Confirmation {session.interface_id} already resolved, skipping render")
            return

        await session.dialog.update_content(session.render(), is_grant_disabled=False)

    # ========================================================================
    # Edits
    # ========================================================================

    def _bind_edit_handlers(self, session: ConfirmationSession) -> List[HandlerRegistration]:
        async def on_edit(event: UserInputEvent, interface_id: str) -> None:
            await self.apply_user_edit(session, event.name, event.value)

        return [
            self.dispatcher.on(element_name, UserInputEventType.INPUT_CHANGE, session.interface_id, on_edit)
            for element_name in session.handlers.editable_elements
        ]

    async def apply_user_edit(self, session: ConfirmationSession, element_name: str, value: Any) -> None:
        """
        Apply one grantor edit to a session.

        Edits that arrive before the context resolves are buffered and
        applied right after the first content render.

        Raises:
            AdjustmentNotAllowedError: If the request disallows adjustment
        """
        if not session.request.is_adjustment_allowed:
            logger.warning(
                f"Rejected edit of '{element_name}' on confirmation {session.interface_id}: "
                f"{AdjustmentNotAllowedError.MESSAGE}"
            )
            if self._audit is not None:
                self._audit.log_adjustment_rejected(session.interface_id, element_name)
            raise AdjustmentNotAllowedError()

        if session.dialog.is_resolved:
            logger.debug(f"Ignoring edit of '{element_name}' on resolved confirmation")
            return

        if not session.is_context_resolved:
            session.pending_edits[element_name] = value
            logger.debug(f"Buffered edit of '{element_name}' until context resolves")
            return

        context = session.handlers.apply_edit(session.context, element_name, value)
        await self._update_context(session, context)

    # ========================================================================
    # Resolution
    # ========================================================================

    async def _resolve_response(self, session: ConfirmationSession, chain) -> Dict[str, Any]:
        handlers = session.handlers
        original = session.request
        chain_id = original.chain_id
        context = session.granted_context if session.granted_context is not None else session.context

        if original.is_adjustment_allowed:
            resolved = await handlers.apply_context(context, original)
        else:
            resolved = original

        populated = await handlers.populate_permission(resolved.permission)
        granted = resolved.with_permission(populated)
        session.granted_request = granted

        address, account_metadata = await asyncio.gather(
            self._accounts.get_account_address(chain_id),
            self._accounts.get_account_metadata(chain_id),
        )

        contracts = chain.contracts
        builder = await handlers.append_restrictions(populated, RestrictionBuilder(contracts))
        builder.add_restriction("timestamp", 0, granted.expiry)

        delegation = Delegation(
            delegate=granted.signer_address,
            delegator=address,
            authority=ROOT_AUTHORITY,
            caveats=tuple(builder.build()),
            salt="0x" + secrets.token_hex(32),
        )
        signed = await self._accounts.sign_delegation(chain_id, delegation)
        logger.info(
            f"Signed delegation for {granted.signer_address} on chain {chain_id} "
            f"with {len(delegation.caveats)} restriction(s)"
        )

        account_meta = []
        if account_metadata.is_deployable:
            account_meta.append(
                {"factory": account_metadata.factory, "factoryData": account_metadata.factory_data}
            )

        response = granted.to_dict()
        response.update(
            {
                "chainId": hex(chain_id),
                "address": address,
                "accountMeta": account_meta,
                "context": encode_delegations([signed]),
                "signerMeta": {"delegationManager": contracts.delegation_manager},
            }
        )
        return response

    def _audit_decision(
        self,
        session: ConfirmationSession,
        approved: bool,
        reason: Optional[str] = None,
    ) -> None:
        if self._audit is None:
            return
        self._audit.log_decision(
            origin=session.origin,
            permission_type=session.request.permission.type,
            interface_id=session.interface_id,
            approved=approved,
            reason=reason,
            delegate=session.granted_request.signer_address if approved else None,
            expiry=session.granted_request.expiry if approved else None,
        )
