"""Retell AI phone-call client."""

from __future__ import annotations

from datetime import datetime

import httpx
from loguru import logger

from ...exceptions import CallError
from ...models.call import CallContext, CallResult

RETELL_BASE_URL = "https://api.retellai.com/v2"


class RetellClient:
    """Thin Retell AI client for outbound motivational calls.

    - One request per call attempt
    - No retries (the escalation carries on regardless)
    """

    def __init__(
        self,
        api_key: str | None,
        agent_id: str | None,
        from_number: str | None,
        base_url: str = RETELL_BASE_URL,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self.agent_id = agent_id
        self.from_number = from_number
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self.agent_id)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport,
        )

    def build_payload(self, phone_number: str, context: CallContext) -> dict:
        """Request body for ``create-phone-call``."""
        rationale = context.rationale or context.build_rationale()
        return {
            "from_number": self.from_number,
            "to_number": phone_number,
            "agent_id": self.agent_id,
            "metadata": {
                "user_name": context.user_name,
                "missed_workouts": context.missed_workouts,
                "streak_before": context.streak_before_loss,
                "bet_amount": context.bet_amount,
                "gym_name": context.gym_name,
                "workout_time": context.workout_time,
                "call_reason": "missed_workout_motivation",
                "timestamp": datetime.now().astimezone().isoformat(),
            },
            "retell_llm_dynamic_variables": {
                "user_name": context.user_name,
                "gym_name": context.gym_name,
                "bet_amount": f"{context.bet_amount:g}",
                "streak_lost": str(context.streak_before_loss),
                "motivational_context": rationale,
            },
        }

    async def create_phone_call(self, phone_number: str, context: CallContext) -> CallResult:
        """Place an outbound call.

        Args:
            phone_number: Destination number in E.164 format
            context: What the agent should know about the user

        Returns:
            The accepted call

        Raises:
            CallError: If the client is unconfigured or the request fails
        """
        if not self.configured:
            raise CallError("Retell AI is not configured (missing API key or agent id)")
        if not phone_number:
            raise CallError("No phone number to call")

        payload = self.build_payload(phone_number, context)
        try:
            async with self._client() as client:
                resp = await client.post("/create-phone-call", json=payload)
        except httpx.HTTPError as e:
            raise CallError(f"Retell AI request failed: {e}") from e

        if resp.status_code >= 400:
            raise CallError(
                f"Retell AI API error: {resp.status_code} {resp.reason_phrase} - {resp.text}",
                status_code=resp.status_code,
            )

        body = resp.json()
        result = CallResult(
            call_id=body.get("call_id", ""),
            status=body.get("call_status", "registered"),
        )
        logger.bind(call_id=result.call_id).info("Retell AI call created")
        return result

    async def get_call_status(self, call_id: str) -> dict:
        """Fetch the provider's record of a call.

        Raises:
            CallError: If the client is unconfigured or the request fails
        """
        if not self.configured:
            raise CallError("Retell AI is not configured (missing API key or agent id)")

        try:
            async with self._client() as client:
                resp = await client.get(f"/call/{call_id}")
        except httpx.HTTPError as e:
            raise CallError(f"Failed to get call status: {e}") from e

        if resp.status_code >= 400:
            raise CallError(
                f"Failed to get call status: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        return resp.json()

    async def test_connection(self) -> dict:
        """Check the credentials by fetching the configured agent.

        Returns:
            Dict with ``success``, ``message`` and optional ``agent`` info
        """
        if not self.configured:
            return {"success": False, "message": "Retell AI is not configured"}

        try:
            async with self._client() as client:
                resp = await client.get(f"/agent/{self.agent_id}")
        except httpx.HTTPError as e:
            return {"success": False, "message": f"Connection error: {e}"}

        if resp.is_success:
            return {"success": True, "message": "Retell AI connection successful", "agent": resp.json()}
        return {
            "success": False,
            "message": f"Connection failed: {resp.status_code} {resp.reason_phrase}",
            "details": resp.text,
        }
