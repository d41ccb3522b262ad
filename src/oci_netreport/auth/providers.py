from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..util.errors import OCIClientError, ToolMissingError, map_oci_error

try:
    import oci  # type: ignore
except Exception:  # pragma: no cover - surfaced as ToolMissingError by require_oci()
    oci = None  # type: ignore


ConfigDict = Dict[str, Any]


@dataclass(frozen=True)
class AuthContext:
    """
    Credentials for the compute and virtual-network clients.
    config_dict is set for profile-based auth, signer for principals and
    session tokens; a session profile carries both.
    """

    method: str  # config|instance|resource|security_token
    config_dict: Optional[ConfigDict]
    signer: Optional[Any]
    profile: Optional[str]
    region: Optional[str]


class AuthError(RuntimeError):
    pass


def require_oci() -> None:
    if oci is None:
        raise ToolMissingError("oci Python SDK not installed. Install it with: pip install oci")


def _detect_region() -> Optional[str]:
    return os.getenv("OCI_REGION") or os.getenv("OCI_CLI_REGION")


def _load_profile(profile: Optional[str]) -> ConfigDict:
    kwargs = {"profile_name": profile} if profile else {}
    try:
        return oci.config.from_file(**kwargs)  # type: ignore[attr-defined]
    except Exception as e:
        mapped = map_oci_error(e, "OCI SDK error while loading config profile")
        if mapped:
            raise mapped from e
        raise AuthError(f"Failed to load OCI config profile {profile or 'DEFAULT'}: {e}") from e


def _profile_context(profile: Optional[str], region: Optional[str]) -> AuthContext:
    cfg = _load_profile(profile)
    return AuthContext("config", cfg, None, profile or "DEFAULT", region or cfg.get("region"))


def _session_context(profile: Optional[str], region: Optional[str]) -> AuthContext:
    # Profile written by `oci session authenticate`
    cfg = _load_profile(profile)
    try:
        token = Path(str(cfg["security_token_file"])).expanduser().read_text(encoding="utf-8").strip()
        key = oci.signer.load_private_key_from_file(cfg["key_file"])  # type: ignore[attr-defined]
        signer = oci.auth.signers.SecurityTokenSigner(token, key)  # type: ignore[attr-defined]
    except KeyError as e:
        raise AuthError(f"Profile {profile or 'DEFAULT'} is not a session profile, missing {e}") from e
    except Exception as e:
        raise AuthError(f"Failed to load session token: {e}") from e
    return AuthContext("security_token", cfg, signer, profile or "DEFAULT", region or cfg.get("region"))


def _principal_context(method: str, label: str, make_signer: Callable[[], Any], region: Optional[str]) -> AuthContext:
    try:
        signer = make_signer()
    except Exception as e:
        raise AuthError(f"Failed to resolve {label}: {e}") from e
    return AuthContext(method, None, signer, None, region or getattr(signer, "region", None) or _detect_region())


def _instance_context(profile: Optional[str], region: Optional[str]) -> AuthContext:
    return _principal_context(
        "instance",
        "instance principals",
        lambda: oci.auth.signers.InstancePrincipalsSecurityTokenSigner(),  # type: ignore[attr-defined]
        region,
    )


def _resource_context(profile: Optional[str], region: Optional[str]) -> AuthContext:
    return _principal_context(
        "resource",
        "resource principals",
        lambda: oci.auth.signers.get_resource_principals_signer(),  # type: ignore[attr-defined]
        region,
    )


_RESOLVERS: Dict[str, Callable[[Optional[str], Optional[str]], AuthContext]] = {
    "config": _profile_context,
    "security_token": _session_context,
    "instance": _instance_context,
    "resource": _resource_context,
}


def resolve_auth(method: str, profile: Optional[str], region: Optional[str] = None) -> AuthContext:
    """
    Resolve credentials for the requested method.
    - config: ~/.oci/config profile (DEFAULT unless one is given)
    - security_token: session profile from `oci session authenticate`
    - instance / resource: instance or resource principals
    - auto: resource principals, then instance principals, then config
    """
    require_oci()
    method = (method or "auto").lower()
    if method in _RESOLVERS:
        return _RESOLVERS[method](profile, region)
    if method != "auto":
        raise AuthError(f"Unsupported auth method: {method}")

    for principal in (_resource_context, _instance_context):
        try:
            return principal(profile, region)
        except AuthError:
            continue
    try:
        return _profile_context(profile, region)
    except OCIClientError:
        raise
    except Exception as e:
        raise AuthError(
            "No credentials found in 'auto' mode (tried resource principals, instance principals, config file). "
            f"Last error: {e}"
        ) from e


def make_client(client_cls: Any, ctx: AuthContext) -> Any:
    """
    Build an SDK client from an AuthContext with the SDK's default retry strategy.
    Signer-based clients still need a config dict holding the region.
    """
    require_oci()
    kwargs: Dict[str, Any] = {}
    retry = getattr(oci.retry, "DEFAULT_RETRY_STRATEGY", None)  # type: ignore[attr-defined]
    if retry is not None:
        kwargs["retry_strategy"] = retry

    if ctx.signer is None and ctx.config_dict is None:
        raise AuthError("Invalid AuthContext: neither config_dict nor signer present")
    cfg = dict(ctx.config_dict or {})
    if ctx.region:
        cfg["region"] = ctx.region
    if ctx.signer is None:
        return client_cls(cfg, **kwargs)
    if not cfg.get("region"):
        raise AuthError("Region is required for signer-based auth. Set OCI_REGION/OCI_CLI_REGION or pass --region.")
    return client_cls(cfg, signer=ctx.signer, **kwargs)
