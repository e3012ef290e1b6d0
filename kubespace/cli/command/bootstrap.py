import argparse
import os
import sys

from kubespace import env_vars
from kubespace.cli.command.command import Command
from kubespace.config import KubespaceConfig
from kubespace.workspace.bootstrap import AgentBootstrapper, agent_binary_url, render_init_script


def _access_url(args: argparse.Namespace, config: KubespaceConfig) -> str:
    access_url = args.access_url or config.workspace.access_url
    if not access_url:
        raise ValueError("access URL is required, pass --access-url or set KUBESPACE_ACCESS_URL")
    return access_url


def _add_agent_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--access-url", default=None, help="Control plane base URL (default: $KUBESPACE_ACCESS_URL)")
    parser.add_argument("--arch", default=None, help="Agent binary architecture (default: $KUBESPACE_AGENT_ARCH)")


class RenderScriptCommand(Command):
    name = "render-script"

    async def arun(self, args: argparse.Namespace):
        config = KubespaceConfig.from_env(args.config)
        access_url = _access_url(args, config)
        script = render_init_script(
            access_url=access_url,
            binary_url=agent_binary_url(access_url, args.arch or config.workspace.agent_arch),
            config=config.bootstrap,
            code_server_port=config.workspace.code_server_port,
        )
        sys.stdout.write(script)

    @staticmethod
    async def add_parser_to(subparsers: argparse._SubParsersAction):
        parser = subparsers.add_parser("render-script", help="Print the agent init script for the dev container")
        _add_agent_arguments(parser)


class BootstrapCommand(Command):
    """Runs the init script workflow in-process; replaces this process with the agent."""

    name = "bootstrap"

    async def arun(self, args: argparse.Namespace):
        config = KubespaceConfig.from_env(args.config)
        access_url = _access_url(args, config)
        bootstrapper = AgentBootstrapper(
            access_url=access_url,
            binary_url=agent_binary_url(access_url, args.arch or config.workspace.agent_arch),
            binary_dir=args.binary_dir or env_vars.KUBESPACE_BOOTSTRAP_DIR or os.path.join(os.getcwd(), ".kubespace"),
            config=config.bootstrap,
            code_server_port=config.workspace.code_server_port,
            launch_code_server=not args.no_code_server,
        )
        sys.exit(bootstrapper.run())

    @staticmethod
    async def add_parser_to(subparsers: argparse._SubParsersAction):
        parser = subparsers.add_parser("bootstrap", help="Download the agent and exec it")
        _add_agent_arguments(parser)
        parser.add_argument("--binary-dir", default=None, help="Directory the agent binary is downloaded to")
        parser.add_argument("--no-code-server", action="store_true", help="Do not launch code-server")
