"""
Resend "send email" node runtime.

Params:
    fromEmail, toEmail, subject, body
Secrets:
    apiKey: Resend API key
"""

import asyncio

import aiohttp

from flowsmith.nodes.base import NodeExecutionError, Properties, Secrets, require_secret


RESEND_API_URL = "https://api.resend.com/emails"


async def execute(props: Properties, secrets: Secrets):
    api_key = require_secret(secrets, "apiKey", "send-email")

    payload = {
        "from": props.get("fromEmail"),
        "to": [props.get("toEmail")],
        "subject": props.get("subject"),
        "html": props.get("body"),
    }

    try:
        async with aiohttp.ClientSession() as http:
            async with http.post(
                RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=aiohttp.ClientTimeout(total=30),
            ) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise NodeExecutionError(
                        f"Resend API returned a non-JSON response (status {response.status})",
                        "send-email",
                    ) from e
                if response.status >= 400:
                    message = data.get("message") if isinstance(data, dict) else None
                    raise NodeExecutionError(
                        f"Resend API error {response.status}: {message or 'request rejected'}",
                        "send-email",
                    )
    except asyncio.TimeoutError as e:
        raise NodeExecutionError("Resend API request timed out", "send-email") from e
    except aiohttp.ClientError as e:
        raise NodeExecutionError(f"Resend API request failed: {e}", "send-email") from e

    return {
        "success": True,
        "id": data.get("id") if isinstance(data, dict) else None,
        "message": f"Email {props.get('fromEmail')} sent to {props.get('toEmail')}",
    }
