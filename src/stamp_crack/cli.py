from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
import logging
import threading
import time

import click
import requests

from stamp_crack.cipher import CipherError, TimestampCipher, strip_padding
from stamp_crack.config import (
    ALPHABET,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_LOWER_SEED,
    DEFAULT_UPPER_SEED,
    INT32_MAX,
    INT32_MIN,
    MULTIPLIER,
    PROGRESS_INTERVAL,
    SHIFT,
    CipherConfig,
    ConfigError,
    SearchRange,
)
from stamp_crack.iprange import ip_range, ip_range_from
from stamp_crack.logs import configure_logging
from stamp_crack.solver import SearchOutcome, SearchResult, solve_ciphertext
from stamp_crack.state_queue import SingleSlotQueue
from stamp_crack.state_snapshot import SearchSnapshot
from stamp_crack.ui import ui_loop
from stamp_crack.utils import (
    CIPHERTEXT_FORMATS,
    b64_decode,
    encode_ciphertext,
    load_ciphertext,
    validate_ciphertext,
    CiphertextError,
    CiphertextFormat,
)

EXIT_EXHAUSTED = 3
EXIT_CANCELLED = 4

DEFAULT_API_URL = "http://127.0.0.1:8000"
DEFAULT_WINDOW = 3600


class IntLiteral(click.ParamType):
    """Integer accepting Python literals such as 0xB11924E1."""

    name = "integer"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            return int(value, 0)
        except ValueError:
            self.fail(f"{value!r} is not an integer literal", param, ctx)


INT_LITERAL = IntLiteral()


@contextmanager
def fatal_errors():
    """Turn unrecoverable errors into a clean CLI failure."""
    try:
        yield
    except (OSError, ConfigError, CiphertextError, CipherError) as e:
        raise click.ClickException(str(e)) from e


def cipher_options(fn):
    fn = click.option("--alphabet", default=ALPHABET.decode("ascii"), show_default=True,
                      help="Password alphabet.")(fn)
    fn = click.option("--shift", type=INT_LITERAL, default=hex(SHIFT), show_default=True,
                      help="Additive shift of the password recurrence.")(fn)
    fn = click.option("--multiplier", type=INT_LITERAL, default=hex(MULTIPLIER), show_default=True,
                      help="Multiplier of the password recurrence.")(fn)
    return fn


def pool_options(fn):
    fn = click.option("--ui/--no-ui", default=False, help="Show a live progress table on stderr.")(fn)
    fn = click.option("--progress-interval", type=int, default=PROGRESS_INTERVAL, show_default=True,
                      help="Log progress every N seeds.")(fn)
    fn = click.option("--timeout", type=float, default=None, help="Stop after this many seconds.")(fn)
    fn = click.option("--max-seeds", type=int, default=None, help="Stop after checking this many seeds.")(fn)
    fn = click.option("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE, show_default=True,
                      help="Seeds per worker task.")(fn)
    fn = click.option("--workers", "-w", type=int, default=1, show_default=True,
                      help="Worker processes. 1 searches in-process.")(fn)
    return fn


def build_cipher(multiplier: int, shift: int, alphabet: str) -> TimestampCipher:
    try:
        alphabet_bytes = alphabet.encode("ascii")
    except UnicodeEncodeError as e:
        raise ConfigError(f"Alphabet must be ASCII: {alphabet!r}") from e
    config = CipherConfig(multiplier=multiplier, shift=shift, alphabet=alphabet_bytes)
    return TimestampCipher(config)


def run_search(cipher: TimestampCipher, ciphertext: bytes, search_range: SearchRange,
               *, ui: bool, **search_kwargs) -> SearchResult:
    """Run the search, optionally in a background thread behind the live UI."""
    if not ui:
        return solve_ciphertext(cipher, ciphertext, search_range, **search_kwargs)

    state_queue: SingleSlotQueue[SearchSnapshot] = SingleSlotQueue()
    cancel_event = threading.Event()

    def search() -> SearchResult:
        try:
            return solve_ciphertext(
                cipher, ciphertext, search_range,
                cancel_event=cancel_event,
                on_progress=state_queue.publish,
                **search_kwargs,
            )
        finally:
            # Always close the queue so the UI can exit
            state_queue.close()

    with ThreadPoolExecutor() as executor:
        future = executor.submit(search)

        try:
            ui_loop(state_queue)
        except KeyboardInterrupt:
            cancel_event.set()
            state_queue.close()

        return future.result()


def report_result(ctx: click.Context, result: SearchResult, config: CipherConfig,
                  *, keep_padding: bool = False, output_path: str | None = None) -> None:
    """Emit the plaintext and exit with a status matching the outcome."""
    for false_positive in result.false_positives:
        click.echo(
            f"False positive at seed {false_positive.seed}: "
            f"invalid {false_positive.encoding} at byte {false_positive.invalid_byte}",
            err=True,
        )

    if result.outcome is SearchOutcome.FOUND:
        match = result.match
        plaintext = match.plaintext if keep_padding else strip_padding(match.plaintext, config)
        click.echo(
            f"Found seed {match.seed} (password {match.password.decode('ascii', errors='replace')}) "
            f"after {result.seeds_checked:,} seeds in {result.elapsed:.1f}s",
            err=True,
        )
        if output_path:
            with open(output_path, "wb") as f:
                f.write(plaintext)
        else:
            click.echo(plaintext.decode("utf-8"))
        return

    if result.outcome is SearchOutcome.EXHAUSTED:
        click.echo(f"Search range exhausted after {result.seeds_checked:,} seeds, no match.", err=True)
        ctx.exit(EXIT_EXHAUSTED)

    click.echo(f"Search cancelled after {result.seeds_checked:,} seeds, no match.", err=True)
    ctx.exit(EXIT_CANCELLED)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option("--log-json", is_flag=True, help="Render logs as JSON.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_json: bool):
    log_config = {"level": logging.DEBUG if verbose else logging.INFO, "json": log_json}
    configure_logging(**log_config)
    ctx.obj = {"log_config": log_config}


@cli.command()
@click.option("--ciphertext-path", "-c", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--ciphertext-format", "-f", type=click.Choice(CIPHERTEXT_FORMATS), default="raw", show_default=True)
@click.option("--upper", type=int, default=DEFAULT_UPPER_SEED, show_default=True, help="First seed searched.")
@click.option("--lower", type=int, default=DEFAULT_LOWER_SEED, show_default=True, help="Last seed searched.")
@click.option("--step", type=int, default=1, show_default=True, help="Distance between seeds.")
@pool_options
@cipher_options
@click.option("--keep-padding", is_flag=True, help="Do not strip the padding from the plaintext.")
@click.option("--output-path", "-o", type=click.Path(dir_okay=False), default=None,
              help="Write the plaintext here instead of stdout.")
@click.pass_context
def crack(ctx: click.Context, ciphertext_path: str, ciphertext_format: CiphertextFormat,
          upper: int, lower: int, step: int,
          workers: int, chunk_size: int, max_seeds: int | None, timeout: float | None,
          progress_interval: int, ui: bool,
          multiplier: int, shift: int, alphabet: str,
          keep_padding: bool, output_path: str | None):
    """Search timestamps for the password of an encrypted file."""
    with fatal_errors():
        cipher = build_cipher(multiplier, shift, alphabet)
        search_range = SearchRange(upper=upper, lower=lower, step=step)
        ciphertext = load_ciphertext(ciphertext_path, ciphertext_format)
        validate_ciphertext(ciphertext, cipher.config)

        result = run_search(
            cipher, ciphertext, search_range,
            ui=ui,
            workers=workers,
            chunk_size=chunk_size,
            max_seeds=max_seeds,
            timeout=timeout,
            progress_interval=progress_interval,
            log_config=ctx.obj["log_config"],
        )
        report_result(ctx, result, cipher.config, keep_padding=keep_padding, output_path=output_path)


@cli.command()
@click.argument("seeds", nargs=-1, required=True, type=click.IntRange(INT32_MIN, INT32_MAX))
@cipher_options
def password(seeds: tuple[int, ...], multiplier: int, shift: int, alphabet: str):
    """Print the password generated for each timestamp seed."""
    with fatal_errors():
        cipher = build_cipher(multiplier, shift, alphabet)
    for seed in seeds:
        click.echo(f"{seed}\t{cipher.generate_password(seed).decode('ascii', errors='replace')}")


@cli.command()
@click.option("--input-path", "-i", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--output-path", "-o", required=True, type=click.Path(dir_okay=False))
@click.option("--seed", type=int, default=None, help="Timestamp seed. Defaults to the current time.")
@click.option("--ciphertext-format", "-f", type=click.Choice(CIPHERTEXT_FORMATS), default="raw", show_default=True)
@cipher_options
def encrypt(input_path: str, output_path: str, seed: int | None, ciphertext_format: CiphertextFormat,
            multiplier: int, shift: int, alphabet: str):
    """Encrypt a file the way the broken scheme did."""
    seed = int(time.time()) if seed is None else seed
    if not INT32_MIN <= seed <= INT32_MAX:
        raise click.BadParameter(f"Seed is outside the signed 32-bit range: {seed}", param_hint="--seed")

    with fatal_errors():
        cipher = build_cipher(multiplier, shift, alphabet)
        with open(input_path, "rb") as f:
            plaintext = f.read()
        ciphertext = cipher.encrypt_with_seed(seed, plaintext)
        with open(output_path, "wb") as f:
            f.write(encode_ciphertext(ciphertext, ciphertext_format))

    click.echo(f"Encrypted {len(plaintext)} bytes with seed {seed}", err=True)


def fetch_demo_data(endpoint: str) -> bytes:
    """Fetch the demo data from the given test endpoint."""
    response = requests.get(endpoint, timeout=10)
    if response.status_code != 200:
        raise click.ClickException(
            f"Failed to get {endpoint}: {response.status_code} {response.text}"
        )
    data = response.json()
    return b64_decode(data["ciphertext_b64"])


def crack_recent(ctx: click.Context, endpoint: str, window: int, workers: int, ui: bool) -> None:
    """Fetch a demo ciphertext and search the last `window` seconds of timestamps."""
    with fatal_errors():
        ciphertext = fetch_demo_data(endpoint)
        cipher = TimestampCipher()
        search_range = SearchRange.window(int(time.time()) + 1, window)
        result = run_search(
            cipher, ciphertext, search_range,
            ui=ui,
            workers=workers,
            log_config=ctx.obj["log_config"],
        )
        report_result(ctx, result, cipher.config)


def demo_options(fn):
    fn = click.option("--ui/--no-ui", default=False, help="Show a live progress table on stderr.")(fn)
    fn = click.option("--workers", "-w", type=int, default=1, show_default=True)(fn)
    fn = click.option("--window", type=int, default=DEFAULT_WINDOW, show_default=True,
                      help="Seconds of timestamps to search back from now.")(fn)
    fn = click.option("--api-url", default=DEFAULT_API_URL, show_default=True)(fn)
    return fn


@cli.command()
@demo_options
@click.pass_context
def demo1(ctx: click.Context, api_url: str, window: int, workers: int, ui: bool):
    """Crack a ciphertext from the demo1 endpoint."""
    crack_recent(ctx, f"{api_url}/api/demo1", window, workers, ui)


@cli.command()
@demo_options
@click.pass_context
def demo2(ctx: click.Context, api_url: str, window: int, workers: int, ui: bool):
    """Crack a ciphertext from the demo2 endpoint."""
    crack_recent(ctx, f"{api_url}/api/demo2", window, workers, ui)


@cli.command("demo-api")
@click.option("--host", default="127.0.0.1", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to bind the server to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def demo_api(host: str, port: int, reload: bool):
    """Start the demo API that encrypts with timestamp passwords."""
    try:
        import uvicorn
        from demo_api.api import app
    except ImportError as e:
        click.echo(f"Error: Demo API dependencies not available: {e}")
        click.echo("Install with: pip install 'stamp-crack[demo]'")
        raise click.Abort()

    click.echo(f"Starting demo API server on http://{host}:{port}")
    click.echo("Available endpoints:")
    click.echo("  - GET  /api/demo1   - Short text")
    click.echo("  - GET  /api/demo2   - Multi-line UTF-8 text")
    click.echo("  - POST /api/encrypt - Encrypt plaintext")
    click.echo("\nPress Ctrl+C to stop the server")

    if reload:
        uvicorn.run("demo_api.api:app", host=host, port=port, reload=True)
    else:
        uvicorn.run(app, host=host, port=port, reload=False)


@cli.command()
@click.argument("start")
@click.argument("end", required=False)
@click.option("--count", "-n", type=int, default=None, help="Number of addresses from START.")
def iprange(start: str, end: str | None, count: int | None):
    """List IPv4 addresses from START to END, or COUNT addresses from START."""
    if (end is None) == (count is None):
        raise click.UsageError("Give either END or --count")
    try:
        addresses = ip_range(start, end) if end is not None else ip_range_from(start, count)
        for address in addresses:
            click.echo(str(address))
    except ValueError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    cli()
