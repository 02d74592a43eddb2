from collections.abc import Callable, Mapping
from dataclasses import dataclass
import logging
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.params import Depends as DependsMarker
from starlette.concurrency import run_in_threadpool
from starlette.responses import RedirectResponse

from isitspam import config
from isitspam.client.errors import ApiError, RateLimitError, ValidationError
from isitspam.client.result import SpamCheckResult
from isitspam.gate.extract import extract_form_fields
from isitspam.gate.params import read_request_params
from isitspam.metrics import MetricsManager, get_metrics_manager

logger = logging.getLogger("isitspam.gate")


@dataclass(frozen=True)
class LiteralPath:
    """Redirect to a fixed path."""

    path: str


@dataclass(frozen=True)
class PathResolver:
    """Redirect to a path computed when spam is detected."""

    resolve: Callable[[], str]


type RedirectTarget = LiteralPath | PathResolver


def as_redirect_target(value: str | Callable[[], str] | RedirectTarget) -> RedirectTarget:
    match value:
        case LiteralPath() | PathResolver():
            return value
        case str():
            return LiteralPath(value)
        case _ if callable(value):
            return PathResolver(value)
        case _:
            raise TypeError(f"Cannot redirect to {value!r}")


def resolve_redirect_target(target: RedirectTarget) -> str:
    match target:
        case LiteralPath(path):
            return path
        case PathResolver(resolve):
            return resolve()


@dataclass(frozen=True)
class SpamHandling:
    """
    What to do when a submission is classified as spam.

    Attributes
    ----------
    redirect_to : RedirectTarget
        Where to send the submitter. Defaults to the site root.
    notice : str | None
        Flash notice shown after the redirect.
    alert : str | None
        Flash alert shown after the redirect.
    """

    redirect_to: RedirectTarget = LiteralPath("/")
    notice: str | None = None
    alert: str | None = None

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "SpamHandling":
        """
        Build from keyword-style options, e.g.
        `{"redirect_to": "/thanks", "notice": "Thank you"}`. `redirect_to`
        may be a path or a zero-argument callable returning one.
        """
        redirect_to = options.get("redirect_to")
        return cls(
            redirect_to=LiteralPath("/")
            if redirect_to is None
            else as_redirect_target(redirect_to),
            notice=options.get("notice"),
            alert=options.get("alert"),
        )

    def flash(self) -> dict[str, str]:
        flash: dict[str, str] = {}
        if self.notice:
            flash["notice"] = self.notice
        if self.alert:
            flash["alert"] = self.alert
        return flash


# Expose a callable signature representing "redirect with a flash payload".
type Redirector = Callable[[Request, str, dict[str, str]], Response]


def flash_redirect(request: Request, path: str, flash: dict[str, str]) -> Response:
    """
    Redirect with 303 See Other, storing the flash payload in the session
    under "flash" when a session middleware is installed.
    """
    if flash and "session" in request.scope:
        request.session["flash"] = flash

    return RedirectResponse(path, status_code=303)


class SpamRedirect(Exception):
    """Raised by the gate to replace the route's response with a redirect."""

    def __init__(self, response: Response) -> None:
        super().__init__("Spam detected")
        self.response = response


async def _handle_spam_redirect(request: Request, exc: Exception) -> Response:
    assert isinstance(exc, SpamRedirect)
    return exc.response


def install_spam_gate(app: FastAPI) -> None:
    """Register the handler that turns `SpamRedirect` into its response."""
    app.add_exception_handler(SpamRedirect, _handle_spam_redirect)


class SpamGate:
    """
    FastAPI dependency that checks form submissions for spam before the
    route handler runs.

    The gate never blocks a request because of its own failures: missing
    form fields skip the check, and any error raised while checking is logged
    and ignored. A successful check is stored on
    `request.state.spam_check_result`.

    Parameters
    ----------
    on_spam : SpamHandling | None
        When given, spam submissions are redirected and the route handler is
        skipped. When omitted, the route decides using the stored result.
    form_param_name : str | None
        Parameter key the form is nested under, if known.
    redirector : Redirector
        Builds the redirect response.

    Notes
    -----
    - The app must call `install_spam_gate(app)` for redirects to work.
    - The blocking API call runs in Starlette's threadpool.
    """

    def __init__(
        self,
        on_spam: SpamHandling | None = None,
        form_param_name: str | None = None,
        redirector: Redirector = flash_redirect,
    ) -> None:
        self.on_spam = on_spam
        self.form_param_name = form_param_name
        self.redirector = redirector

    async def __call__(
        self,
        request: Request,
        configuration: Annotated[
            config.Configuration, Depends(config.get_configuration)
        ],
        metrics: Annotated[MetricsManager, Depends(get_metrics_manager)],
    ) -> None:
        params = await read_request_params(request)
        fields = extract_form_fields(params, self.form_param_name)

        if not fields.complete:
            metrics.record("skipped")
            return

        end_user_ip: str | None = None
        if configuration.track_end_user_ip and request.client:
            end_user_ip = request.client.host

        log_context = {"path": request.url.path, "method": request.method}

        try:
            client = configuration.client
            with metrics.check_time.time():
                result: SpamCheckResult = await run_in_threadpool(
                    client.check_spam,
                    fields.name,
                    fields.email,
                    fields.message,
                    {},
                    end_user_ip,
                )
        except ValidationError as e:
            logger.warning(
                f"Spam check validation failed: {e}",
                extra={**log_context, "outcome": "validation_error"},
            )
            metrics.record("validation_error")
            return
        except RateLimitError as e:
            logger.warning(
                f"Spam check rate limit exceeded: {e}",
                extra={**log_context, "outcome": "rate_limited"},
            )
            metrics.record("rate_limited")
            return
        except ApiError as e:
            logger.error(
                f"Spam check API error: {e}",
                extra={
                    **log_context,
                    "outcome": "api_error",
                    "status_code": e.status_code,
                },
            )
            metrics.record("api_error")
            return
        except Exception as e:
            logger.error(
                f"Spam check unexpected error: {e}",
                extra={**log_context, "outcome": "error"},
            )
            metrics.record("error")
            return

        request.state.spam_check_result = result
        metrics.record("spam" if result.spam else "legitimate")

        if not result.spam or self.on_spam is None:
            return

        try:
            path = resolve_redirect_target(self.on_spam.redirect_to)
            response = self.redirector(request, path, self.on_spam.flash())
        except Exception as e:
            logger.error(
                f"Spam redirect failed: {e}", extra={**log_context, "outcome": "spam"}
            )
            return

        logger.info(
            "Spam detected, redirecting",
            extra={**log_context, "outcome": "spam", "redirect_to": path},
        )
        raise SpamRedirect(response)


def is_it_spam(
    on_spam: SpamHandling | Mapping[str, Any] | None = None,
    form_param_name: str | None = None,
    redirector: Redirector = flash_redirect,
) -> DependsMarker:
    """
    Create a route dependency that runs the spam gate.

    Examples
    --------
    >>> @app.post("/contact", dependencies=[is_it_spam(on_spam={"redirect_to": "/thanks", "notice": "Thank you"})])
    ... def create_contact(): ...
    """
    if isinstance(on_spam, Mapping):
        # An empty mapping means manual mode, like None.
        on_spam = SpamHandling.from_options(on_spam) if on_spam else None

    return Depends(SpamGate(on_spam, form_param_name, redirector))


def get_spam_check_result(request: Request) -> SpamCheckResult | None:
    """
    FastAPI dependency returning the result stored by the gate, or None when
    no check ran or the check failed.
    """
    return getattr(request.state, "spam_check_result", None)
