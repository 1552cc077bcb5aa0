"""Actionable error catalog for observatory-deploy."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "release_not_found": {
        "what": "Release `{tag}` was not found in {repository}.",
        "next": "Check the tag on the repository's releases page and retry.",
    },
    "asset_not_found": {
        "what": "No asset matching `{pattern}` in release `{tag}` of {repository}.",
        "next": "Wait for the release build to upload its artifacts or pick another tag.",
    },
    "missing_config": {
        "what": "Missing required configuration: {fields}.",
        "next": "Pass the matching options, export the environment variables or add them to the config file.",
    },
    "precheck_failed": {
        "what": "Service `{service}` is not healthy before cutover (status: {status}).",
        "next": "Bring the service back to a running state before deploying a new release.",
    },
    "verification_failed": {
        "what": "Service `{service}` did not report healthy after cutover (status: {status}).",
        "next": "Inspect the service logs and redeploy a known-good tag.",
    },
    "deploy_locked": {
        "what": "Another deployment holds the lock at {path}.",
        "next": "Wait for it to finish, or remove the lock file if no deployment is running.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
