# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# TWINFORGE - COMMAND LINE INTERFACE
# -----------------------------------------------------------------------------
# Responsibility: The one entry point of the build.
#
# Commands:
# - twinforge build [--mode development|production] [--config twinforge.yaml]
#     One build generation. Exit 0 when committed, 1 when it failed (the
#     failing asset path and stage go to stderr).
# - twinforge watch [--config ...] [--no-server] [--host H] [--port P]
#     Development build, then watch loop + dev server with live reload and
#     backend proxy. Runs until interrupted.
# -----------------------------------------------------------------------------

import argparse
import sys
import threading
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.tree import Tree

from twinforge import __version__
from twinforge.core.configurator import CONFIG_FILENAME, load_base
from twinforge.core.orchestrator import BuildOrchestrator
from twinforge.core.watcher import POLL_INTERVAL_SECONDS, Watcher
from twinforge.domain.errors import PipelineError
from twinforge.domain.models import BaseConfiguration, BuildMode, BuildReport
from twinforge.infra.collaborators import (
    CommandScriptCompiler,
    ModuleStyleCompiler,
    PassthroughScriptCompiler,
)
from twinforge.infra.environment import backend_port, resolve_mode, resolve_revision

console = Console()
err_console = Console(stderr=True)

DEV_SERVER_HOST = "127.0.0.1"
DEV_SERVER_PORT = 8080


def build_orchestrator(base: BaseConfiguration, mode: BuildMode) -> BuildOrchestrator:
    """Wire the configured collaborators into an orchestrator."""
    settings = base.compiler
    if settings.script_command:
        script_compiler = CommandScriptCompiler(settings.script_command, settings.timeout_seconds)
    else:
        script_compiler = PassthroughScriptCompiler()
    style_compiler = ModuleStyleCompiler(settings.style_command, settings.timeout_seconds)
    return BuildOrchestrator(
        base, mode, script_compiler=script_compiler, style_compiler=style_compiler
    )


def report_failure(error: PipelineError) -> None:
    """Write the failing asset path and stage name to stderr."""
    err_console.print(
        f"[bold red]BUILD FAILED[/bold red] stage={error.stage or '-'} "
        f"asset={error.source_path or '-'}: {escape(str(error))}"
    )


def print_report(report: BuildReport) -> None:
    tree = Tree(f"[bold cyan]Generation {report.generation} ({report.mode.value})[/bold cyan]")
    for target, results in report.results.items():
        branch = tree.add(f"[cyan]{target.value}[/cyan] ({len(results)} assets)")
        for result in results:
            branch.add(f"{result.source_path} -> [green]{result.final_name}[/green]")
    console.print(Panel(tree, title="Build", border_style="cyan"))
    console.print(
        Panel(
            f"[bold green]BUILD COMMITTED[/bold green] in {report.duration_seconds:.2f}s",
            style="on black",
        )
    )


def _load(args: argparse.Namespace) -> BaseConfiguration:
    config_path = Path(args.config).resolve()
    return load_base(config_path, revision=resolve_revision(config_path.parent))


def cmd_build(args: argparse.Namespace) -> int:
    try:
        mode = resolve_mode(args.mode)
        base = _load(args)
        report = build_orchestrator(base, mode).run()
    except PipelineError as e:
        report_failure(e)
        return 1
    except OSError as e:
        err_console.print(f"[bold red]BUILD FAILED[/bold red] stage=io asset=-: {escape(str(e))}")
        return 1

    print_report(report)
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    try:
        base = _load(args)
        port = backend_port()
    except PipelineError as e:
        report_failure(e)
        return 1

    orchestrator = build_orchestrator(base, BuildMode.DEVELOPMENT)
    try:
        orchestrator.run()
    except PipelineError as e:
        report_failure(e)
        console.print("[yellow][WATCH] Initial build failed; waiting for changes...[/yellow]")
    except OSError as e:
        err_console.print(f"[bold red]BUILD FAILED[/bold red] stage=io asset=-: {escape(str(e))}")
        console.print("[yellow][WATCH] Initial build failed; waiting for changes...[/yellow]")

    notify = None
    if not args.no_server:
        from twinforge.infra.dev_server import ReloadChannel, create_app, start_dev_server

        channel = ReloadChannel()
        notify = channel.publish
        app = create_app(
            output_dir=Path(base.project_root) / base.output_path,
            public_path=base.public_path,
            channel=channel,
            backend_url=f"http://localhost:{port}",
        )
        start_dev_server(app, args.host, args.port)

    watcher = Watcher(
        orchestrator,
        Path(base.project_root) / base.source_root,
        notify=notify,
        interval=args.interval,
    )
    stop = threading.Event()
    try:
        watcher.run(stop)
    except KeyboardInterrupt:
        stop.set()
        console.print("[yellow]Shutting down.[/yellow]")
    return 0


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twinforge", description="Dual-target (browser + server) asset build pipeline"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Run one build generation")
    build.add_argument(
        "--mode",
        choices=[m.value for m in BuildMode],
        default=None,
        help="Build mode (default: TWINFORGE_ENV / NODE_ENV, else production)",
    )
    build.add_argument("--config", default=CONFIG_FILENAME, help="Build template (YAML)")
    build.set_defaults(func=cmd_build)

    watch = sub.add_parser("watch", help="Development build, watch loop and dev server")
    watch.add_argument("--config", default=CONFIG_FILENAME, help="Build template (YAML)")
    watch.add_argument("--no-server", action="store_true", help="Do not start the dev server")
    watch.add_argument("--host", default=DEV_SERVER_HOST)
    watch.add_argument("--port", type=int, default=DEV_SERVER_PORT)
    watch.add_argument("--interval", type=float, default=POLL_INTERVAL_SECONDS)
    watch.set_defaults(func=cmd_watch)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv(Path.cwd() / ".env")
    args = make_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
