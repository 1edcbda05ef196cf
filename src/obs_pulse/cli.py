"""CLI commands for obs-pulse."""

import click

_address_option = click.option(
    "--address",
    "-a",
    envvar="OBS_PULSE_ADDRESS",
    default=None,
    help="obs-websocket address, e.g. 127.0.0.1:4455 (default: last used)",
)
_password_option = click.option(
    "--password",
    "-p",
    envvar="OBS_PULSE_PASSWORD",
    default=None,
    help="obs-websocket password (default: last used)",
)


def _startup_credentials(config, address: str | None, password: str | None):
    """Explicit options first, then stored credentials, then the configured default."""
    from obs_pulse.credentials import CredentialStore, resolve_credentials

    store = None
    if config.connection.remember_credentials:
        store = CredentialStore(config.credentials_path)
    return resolve_credentials(store, address, password, config.connection.default_address)


def _load_config():
    from obs_pulse.config import Config

    try:
        return Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="obs-pulse")
def main() -> None:
    """Watch an OBS instance's frame drops and outputs live."""
    pass


@main.command()
@_address_option
@_password_option
def tui(address: str | None, password: str | None) -> None:
    """Launch interactive dashboard."""
    from obs_pulse import logging as pulse_log
    from obs_pulse.tui import run_tui

    config = _load_config()
    pulse_log.configure(config, source="tui")
    run_tui(config, _startup_credentials(config, address, password))


@main.command()
@_address_option
@_password_option
@click.option("--count", "-n", type=int, default=None, help="Stop after this many samples")
def watch(address: str | None, password: str | None, count: int | None) -> None:
    """Print one line per sample to the console."""
    import asyncio

    from obs_pulse import logging as pulse_log

    config = _load_config()
    pulse_log.configure(config, source="watch")
    credentials = _startup_credentials(config, address, password)

    try:
        ok = asyncio.run(_watch(config, credentials, count))
    except KeyboardInterrupt:
        ok = True
    if not ok:
        raise SystemExit(1)


async def _watch(config, credentials, count: int | None) -> bool:
    """Run the monitor until count samples were printed or the connection is gone.

    Returns:
        False if the session ended because of a connection failure
    """
    import asyncio

    from obs_pulse import logging as pulse_log
    from obs_pulse.monitor import Monitor
    from obs_pulse.obs_client import ConnectError

    monitor = Monitor(config)
    done = asyncio.Event()
    failed = False
    printed = 0

    def on_update(view) -> None:
        nonlocal printed
        pulse_log.tick_line(view)
        printed += 1
        if count is not None and printed >= count:
            done.set()

    def on_status(state: str, message: str) -> None:
        nonlocal failed
        if state == "reconnecting":
            pulse_log.connection_lost(message)
        elif state == "disconnected":
            pulse_log.error(message, pulse_log.Icon.DISCONNECTED)
            failed = True
            done.set()

    monitor.on_update = on_update
    monitor.on_status = on_status

    pulse_log.connecting(credentials.address)
    try:
        await monitor.connect(credentials.address, credentials.password)
    except ConnectError as e:
        pulse_log.connect_failed(str(e))
        return False
    pulse_log.connected(credentials.address)

    try:
        await done.wait()
    finally:
        monitor.on_status = None
        await monitor.disconnect()
    return not failed


@main.command()
def forget() -> None:
    """Remove stored connection credentials."""
    from obs_pulse import logging as pulse_log
    from obs_pulse.credentials import CredentialStore

    config = _load_config()
    CredentialStore(config.credentials_path).forget()
    pulse_log.credentials_forgotten(str(config.credentials_path))


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def config_init(force: bool) -> None:
    """Write the default configuration file."""
    from obs_pulse import logging as pulse_log
    from obs_pulse.config import Config

    cfg = Config()
    if cfg.config_path.exists() and not force:
        click.echo(f"Config already exists at {cfg.config_path} (use --force to overwrite)")
        return
    cfg.save()
    pulse_log.config_created(str(cfg.config_path))


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    cfg = _load_config()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[connection]")
    click.echo(f"  default_address = {cfg.connection.default_address}")
    click.echo(f"  reconnect_delay = {cfg.connection.reconnect_delay}")
    click.echo(f"  connect_timeout = {cfg.connection.connect_timeout}")
    click.echo(f"  remember_credentials = {cfg.connection.remember_credentials}")
    click.echo()
    click.echo("[polling]")
    click.echo(f"  interval = {cfg.polling.interval}")
    click.echo()
    click.echo("[thresholds]")
    click.echo(f"  warning = {cfg.thresholds.warning}")
    click.echo(f"  critical = {cfg.thresholds.critical}")
    click.echo()
    click.echo("[system]")
    click.echo(f"  log_max_bytes = {cfg.system.log_max_bytes}")
    click.echo(f"  log_backup_count = {cfg.system.log_backup_count}")
