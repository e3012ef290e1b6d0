import argparse
from typing import Any

from kubespace import env_vars
from kubespace.cli.command.command import Command
from kubespace.config import KubespaceConfig
from kubespace.logger import init_logger
from kubespace.operator.k8s.operator import K8sOperator
from kubespace.workspace.identity import WorkspaceIdentity

logger = init_logger("kubespace.cli.workspace")


def add_workspace_arguments(parser: argparse.ArgumentParser, with_start_count: bool = False):
    parser.add_argument("--owner", required=True, help="Workspace owner username")
    parser.add_argument("--workspace", required=True, help="Workspace name")
    parser.add_argument("--owner-email", default="", help="Owner email, used for git attribution")
    parser.add_argument("--owner-name", default=None, help="Owner full name, used for git attribution")
    if with_start_count:
        parser.add_argument(
            "--start-count",
            type=int,
            choices=[0, 1],
            default=1,
            help="1 to run the workspace pod, 0 to stop it while keeping its volumes",
        )

    parser.add_argument("--namespace", default=None, help="Target namespace (must already exist)")
    parser.add_argument(
        "--home-disk-size", type=int, default=None, dest="home_disk_size_gb", help="Home volume size in GiB"
    )
    parser.add_argument(
        "--use-kubeconfig",
        action="store_true",
        help="Authenticate with the host kubeconfig instead of the in-cluster service account",
    )


def identity_from_args(args: argparse.Namespace) -> WorkspaceIdentity:
    return WorkspaceIdentity(
        owner=args.owner,
        workspace_name=args.workspace,
        owner_email=args.owner_email,
        owner_name=args.owner_name,
        start_count=getattr(args, "start_count", 1),
    )


def params_from_args(args: argparse.Namespace) -> dict[str, Any]:
    raw: dict[str, Any] = {"use_kubeconfig": args.use_kubeconfig}
    if args.namespace is not None:
        raw["namespace"] = args.namespace
    if args.home_disk_size_gb is not None:
        raw["home_disk_size_gb"] = args.home_disk_size_gb
    return raw


class WorkspaceCommand(Command):
    """Shared plumbing for commands acting on one workspace."""

    def _operator(self, args: argparse.Namespace) -> K8sOperator:
        return K8sOperator(KubespaceConfig.from_env(args.config))


class ApplyCommand(WorkspaceCommand):
    name = "apply"

    async def arun(self, args: argparse.Namespace):
        logger.info(f"reconciling workspace {args.owner}/{args.workspace} with start_count={args.start_count}")
        token = args.agent_token or env_vars.KUBESPACE_AGENT_TOKEN
        result = await self._operator(args).apply(identity_from_args(args), params_from_args(args), token)
        print(result.model_dump_json(indent=2))

    @staticmethod
    async def add_parser_to(subparsers: argparse._SubParsersAction):
        parser = subparsers.add_parser("apply", help="Reconcile a workspace to its desired state")
        add_workspace_arguments(parser, with_start_count=True)
        parser.add_argument(
            "--agent-token",
            default=None,
            help="Agent token issued by the control plane (default: $KUBESPACE_AGENT_TOKEN)",
        )


class StopCommand(WorkspaceCommand):
    name = "stop"

    async def arun(self, args: argparse.Namespace):
        stopped = await self._operator(args).stop(identity_from_args(args), params_from_args(args))
        print("stopped" if stopped else "already stopped")

    @staticmethod
    async def add_parser_to(subparsers: argparse._SubParsersAction):
        parser = subparsers.add_parser("stop", help="Delete the workspace pod, keep its volumes")
        add_workspace_arguments(parser)


class TeardownCommand(WorkspaceCommand):
    name = "teardown"

    async def arun(self, args: argparse.Namespace):
        if not args.yes:
            raise ValueError("teardown deletes the workspace volumes, pass --yes to confirm")
        deleted = await self._operator(args).teardown(identity_from_args(args), params_from_args(args))
        for name in deleted:
            print(f"deleted {name}")

    @staticmethod
    async def add_parser_to(subparsers: argparse._SubParsersAction):
        parser = subparsers.add_parser("teardown", help="Delete the workspace pod and its volumes")
        add_workspace_arguments(parser)
        parser.add_argument("--yes", action="store_true", help="Confirm deleting persistent data")


class StatusCommand(WorkspaceCommand):
    name = "status"

    async def arun(self, args: argparse.Namespace):
        status = await self._operator(args).get_status(identity_from_args(args), params_from_args(args))
        print(status.model_dump_json(indent=2))

    @staticmethod
    async def add_parser_to(subparsers: argparse._SubParsersAction):
        parser = subparsers.add_parser("status", help="Show pod phase, volumes and apps of a workspace")
        add_workspace_arguments(parser)

