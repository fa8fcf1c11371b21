"""
Main entry point for the Project Hub command line.
"""

import argparse
import asyncio
import sys
from datetime import datetime
from typing import List, Optional

from .components.branch_manager import BranchManager
from .components.commit_builder import CommitBuilder
from .components.commit_history import CommitHistory
from .components.github_gateway import GitHubGateway
from .components.revert_engine import RevertEngine
from .components.staging_store import DEFAULT_DB_PATH, StagingStore
from .models.config import Configuration, CredentialContext
from .models.git import BranchProtection, CommitAuthor, FileChangeOp, FileOperation
from .models.staging import ChangeType, ProjectRecord
from .services.config_manager import ConfigurationManager
from .services.credentials import verify_token
from .services.sync_service import ProjectSyncService
from .utils.error_handling import ProjectHubError, ProjectNotFoundError
from .utils.logging import get_logger, setup_logging

logger = get_logger("main")


class Application:
    """Wires configuration, the staging store and the remote gateway for one command."""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self._config_manager: Optional[ConfigurationManager] = None
        self._store: Optional[StagingStore] = None
        self._config: Optional[Configuration] = None

    @property
    def config_manager(self) -> ConfigurationManager:
        if self._config_manager is None:
            self._config_manager = ConfigurationManager(self.args.config)
        return self._config_manager

    def config(self) -> Configuration:
        """Load configuration, switching logging to its settings on first load."""
        first_load = self._config is None
        self._config = self.config_manager.get_config()
        if first_load:
            setup_logging(
                log_dir=self._config.logging.directory,
                log_level=self.args.log_level or self._config.logging.level,
            )
        return self._config

    @property
    def store(self) -> StagingStore:
        if self._store is None:
            self._store = StagingStore(self.args.db or self._configured_db_path())
        return self._store

    def _configured_db_path(self) -> str:
        try:
            config = self.config()
        except (ValueError, FileNotFoundError) as e:
            logger.debug(
                "No usable configuration, using the default staging database",
                extra={"reason": str(e)},
            )
            return str(DEFAULT_DB_PATH)
        return config.storage.database_path

    def credentials(self, owner: Optional[str] = None) -> CredentialContext:
        self.config()
        return self.config_manager.get_credentials(self.args.account or owner)

    def gateway(self) -> GitHubGateway:
        timeout = self.config().github.timeout
        return GitHubGateway(timeout=timeout)

    def resolve_project(self, ref: str) -> ProjectRecord:
        """Look a project up by id, then by name."""
        try:
            return self.store.get_project(ref)
        except ProjectNotFoundError:
            project = self.store.find_project(ref)
            if project is None:
                raise
            return project

    def close(self) -> None:
        if self._store is not None:
            self._store.close()


def _print_project(project: ProjectRecord) -> None:
    print(f"{project.name} ({project.id})")
    print(f"  type:        {project.type}")
    print(f"  path:        {project.path or '-'}")
    print(f"  repository:  {project.repository or '-'}")
    print(f"  last commit: {project.last_commit or '-'}")


def _parse_file_spec(spec: str) -> FileChangeOp:
    """Turn REPO_PATH=LOCAL_FILE into an add operation."""
    if "=" not in spec:
        raise ValueError(f"Expected REPO_PATH=LOCAL_FILE, got {spec!r}")
    path, source = spec.split("=", 1)
    return FileChangeOp(path=path, operation=FileOperation.ADD, source_reference=source)


def cmd_project(app: Application, args: argparse.Namespace) -> None:
    if args.action == "add":
        project = app.store.register_project(
            args.name,
            path=args.path or "",
            project_type=args.type,
            description=args.description or "",
        )
        print(f"Registered project {project.name} ({project.id})")
    elif args.action == "link":
        project = app.resolve_project(args.project)
        owner, _, repo = args.repository.partition("/")
        if not repo:
            raise ValueError("Repository must be given as OWNER/NAME")
        project = app.store.link_repository(project.id, owner, repo)
        print(f"Linked {project.name} to {project.repository}")
    else:
        _print_project(app.resolve_project(args.project))


def cmd_change(app: Application, args: argparse.Namespace) -> None:
    project = app.resolve_project(args.project)
    if args.action == "record":
        change = app.store.record_change(
            project.id, args.type, args.description, args.files
        )
        print(f"Recorded {change.type.value} change {change.id}")
    elif args.action == "pending":
        pending = app.store.get_pending_changes(project.id)
        if not pending:
            print("No pending changes")
        for change in pending:
            files = f" [{', '.join(change.files)}]" if change.files else ""
            print(f"{change.timestamp:%Y-%m-%d %H:%M} {change.type.value}: {change.description}{files}")
    else:
        app.store.clear_committed_changes(project.id, args.sha)
        print(f"Marked pending changes of {project.name} as committed in {args.sha}")


async def cmd_commit(app: Application, args: argparse.Namespace) -> None:
    project = app.resolve_project(args.project)
    ctx = app.credentials(project.repository_owner)

    changes = [_parse_file_spec(spec) for spec in args.file or []]
    changes += [
        FileChangeOp(path=path, operation=FileOperation.DELETE)
        for path in args.delete or []
    ]
    author = None
    if args.author_name or args.author_email:
        author = CommitAuthor(name=args.author_name or "", email=args.author_email or "")

    async with app.gateway() as gateway:
        service = ProjectSyncService(app.store, CommitBuilder(gateway))
        result = await service.commit_pending_changes(
            ctx, project.id, changes, args.message, args.branch, author
        )

    if result is None:
        print("Nothing to commit")
    else:
        print(f"Committed {result.sha}")
        print(result.url)


async def cmd_branch(app: Application, args: argparse.Namespace) -> None:
    ctx = app.credentials()
    async with app.gateway() as gateway:
        manager = BranchManager(gateway)
        if args.action == "create":
            protection = None
            if args.protect:
                protection = BranchProtection(
                    required_reviews=args.require_reviews,
                    required_status_checks=args.require_status_checks,
                    enforce_admins=args.enforce_admins,
                )
            result = await manager.create_branch(
                ctx, args.repo, args.name, args.from_branch, protection
            )
            print(f"Created {result.name} at {result.sha}")
            if result.protection_error:
                print(f"Warning: protection not applied: {result.protection_error}")
        elif args.action == "delete":
            await manager.delete_branch(ctx, args.repo, args.name)
            print(f"Deleted {args.name}")
        elif args.action == "list":
            for branch in await manager.list_branches(ctx, args.repo):
                flags = " (protected)" if branch.protected else ""
                print(f"{branch.name} {branch.head_sha[:7]}{flags}")
        else:
            branch = await manager.get_branch(ctx, args.repo, args.name)
            print(f"{branch.name} {branch.head_sha}")
            print(f"  protected: {branch.protected}")


async def cmd_merge(app: Application, args: argparse.Namespace) -> int:
    ctx = app.credentials()
    async with app.gateway() as gateway:
        result = await BranchManager(gateway).merge_branches(
            ctx, args.repo, args.base, args.head, args.message
        )

    if result.conflicted:
        print(f"Merge conflict: resolve at {result.url}")
        return 1
    if result.merged:
        print(f"Merged {args.head} into {args.base}: {result.sha}")
    else:
        print(result.message)
    return 0


async def cmd_revert(app: Application, args: argparse.Namespace) -> None:
    ctx = app.credentials()
    message = args.message or f"Revert {args.sha}"
    async with app.gateway() as gateway:
        result = await RevertEngine(gateway).revert_commit(
            ctx, args.repo, args.sha, message, args.branch
        )
    print(f"Reverted {args.sha} with {result.sha}")
    print(result.url)


async def cmd_log(app: Application, args: argparse.Namespace) -> None:
    ctx = app.credentials()
    async with app.gateway() as gateway:
        commits = await CommitHistory(gateway).list_commits(
            ctx,
            args.repo,
            branch=args.branch,
            path=args.path,
            since=args.since,
            until=args.until,
            author=args.author,
        )
    for commit in commits:
        first_line = commit.message.splitlines()[0] if commit.message else ""
        print(f"{commit.sha[:7]} {first_line}")


def cmd_verify(app: Application, args: argparse.Namespace) -> None:
    ctx = app.credentials()
    info = verify_token(ctx)
    print(f"Token OK: authenticated as {info.login}")
    if info.scopes:
        print(f"Scopes: {', '.join(info.scopes)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project-hub",
        description="Stage project changes and sync them to a remote repository",
    )
    parser.add_argument("--config", help="Configuration file path")
    parser.add_argument("--account", help="Account owner to act as")
    parser.add_argument("--db", help="Staging database path")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    commands = parser.add_subparsers(title="Commands", dest="command")
    commands.required = True

    # project
    project = commands.add_parser("project", help="Manage projects")
    project_actions = project.add_subparsers(dest="action")
    project_actions.required = True
    add = project_actions.add_parser("add", help="Register a project")
    add.add_argument("name")
    add.add_argument("--path")
    add.add_argument("--type", default="generic")
    add.add_argument("--description")
    link = project_actions.add_parser("link", help="Link a project to OWNER/NAME")
    link.add_argument("project")
    link.add_argument("repository")
    show = project_actions.add_parser("show", help="Show a project")
    show.add_argument("project")

    # change
    change = commands.add_parser("change", help="Manage pending changes")
    change_actions = change.add_subparsers(dest="action")
    change_actions.required = True
    record = change_actions.add_parser("record", help="Record a pending change")
    record.add_argument("project")
    record.add_argument("type", help=", ".join(t.value for t in ChangeType))
    record.add_argument("description")
    record.add_argument("--files", nargs="*")
    pending = change_actions.add_parser("pending", help="List pending changes")
    pending.add_argument("project")
    clear = change_actions.add_parser("clear", help="Mark pending changes as committed")
    clear.add_argument("project")
    clear.add_argument("sha")

    # commit
    commit = commands.add_parser("commit", help="Commit files for a project")
    commit.add_argument("project")
    commit.add_argument(
        "--file", action="append", metavar="REPO_PATH=LOCAL_FILE", help="Add or update a file"
    )
    commit.add_argument("--delete", action="append", metavar="REPO_PATH")
    commit.add_argument("-m", "--message")
    commit.add_argument("--branch")
    commit.add_argument("--author-name")
    commit.add_argument("--author-email")

    # branch
    branch = commands.add_parser("branch", help="Manage branches")
    branch_actions = branch.add_subparsers(dest="action")
    branch_actions.required = True
    create = branch_actions.add_parser("create")
    create.add_argument("repo")
    create.add_argument("name")
    create.add_argument("--from", dest="from_branch")
    create.add_argument("--protect", action="store_true")
    create.add_argument("--require-reviews", action="store_true")
    create.add_argument("--require-status-checks", action="store_true")
    create.add_argument("--enforce-admins", action="store_true")
    delete = branch_actions.add_parser("delete")
    delete.add_argument("repo")
    delete.add_argument("name")
    branch_list = branch_actions.add_parser("list")
    branch_list.add_argument("repo")
    get = branch_actions.add_parser("get")
    get.add_argument("repo")
    get.add_argument("name")

    # merge
    merge = commands.add_parser("merge", help="Merge HEAD into BASE on the server")
    merge.add_argument("repo")
    merge.add_argument("base")
    merge.add_argument("head")
    merge.add_argument("-m", "--message")

    # revert
    revert = commands.add_parser("revert", help="Revert a commit")
    revert.add_argument("repo")
    revert.add_argument("sha")
    revert.add_argument("-m", "--message")
    revert.add_argument("--branch")

    # log
    log = commands.add_parser("log", help="List commits")
    log.add_argument("repo")
    log.add_argument("--branch")
    log.add_argument("--path")
    log.add_argument("--since", type=datetime.fromisoformat)
    log.add_argument("--until", type=datetime.fromisoformat)
    log.add_argument("--author")

    commands.add_parser("verify", help="Check the account token")

    return parser


async def async_main(app: Application, args: argparse.Namespace) -> int:
    """Dispatch one parsed command."""
    match args.command:
        case "project":
            cmd_project(app, args)
        case "change":
            cmd_change(app, args)
        case "commit":
            await cmd_commit(app, args)
        case "branch":
            await cmd_branch(app, args)
        case "merge":
            return await cmd_merge(app, args)
        case "revert":
            await cmd_revert(app, args)
        case "log":
            await cmd_log(app, args)
        case "verify":
            cmd_verify(app, args)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(log_dir=None, log_level=args.log_level or "WARNING")

    app = Application(args)
    try:
        return asyncio.run(async_main(app, args))
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    except (ProjectHubError, ValueError, FileNotFoundError) as e:
        logger.error("Command failed", extra={"command": args.command, "error": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        app.close()


if __name__ == "__main__":
    sys.exit(main())
