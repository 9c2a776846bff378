"""Command-line interface for VMRotate."""

import sys
import click
from pathlib import Path
from typing import Optional

from .config import Config
from .errors import VMRotateError
from .locator import BackupLocator
from .platforms import get_platform
from .rotation import RotationManager
from .utils import NotificationManager


# Exit status when the rotation ran but some machines failed
PARTIAL_FAILURE = 2


def initialize_config(config_file: Optional[str] = None) -> tuple:
    """Initialize configuration and notification manager."""
    try:
        config = Config(config_file)
        notifier = NotificationManager(config)
        return config, notifier
    except Exception as e:
        click.echo(f"Error: Failed to initialize configuration: {str(e)}", err=True)
        sys.exit(1)


def _platform(ctx):
    return get_platform(ctx.obj['config'].vm_platform, ctx.obj['config'], ctx.obj['notifier'])


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True,
              help='Enable verbose output')
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """VMRotate - rotating virtual machine export backups.

    Exports VMs into dated Weekly/Monthly folders, keeps a fixed number of
    folders per class and restores the newest export of a machine.
    """
    ctx.ensure_object(dict)

    config_obj, notifier_obj = initialize_config(config)

    if verbose:
        config_obj.set('notifications.level', 'DEBUG')
        notifier_obj = NotificationManager(config_obj)

    ctx.obj['config'] = config_obj
    ctx.obj['notifier'] = notifier_obj


@cli.command()
@click.option('--root', '-r', type=click.Path(), help='Backup root directory')
@click.pass_context
def init(ctx, root: Optional[str]):
    """Write a configuration file and create the backup root."""
    config_obj = ctx.obj['config']
    notifier_obj = ctx.obj['notifier']

    try:
        if root:
            config_obj.set('backup.root', root)

        Path(config_obj.backup_root).mkdir(parents=True, exist_ok=True)

        config_file = "vmrotate.yaml"
        config_obj.save(config_file)

        notifier_obj.success("VMRotate initialized successfully!")
        click.echo(f"Configuration saved to: {config_file}")
        click.echo(f"Backup root: {config_obj.backup_root}")

        platform = _platform(ctx)
        if platform.is_available():
            click.echo(f"VM platform: {platform.platform_name}")
        else:
            click.echo(f"'{platform.command_name}' not found; {platform.platform_name} exports will fail.")

    except Exception as e:
        notifier_obj.error(f"Initialization failed: {str(e)}")
        sys.exit(1)


@cli.command()
@click.argument('names', nargs=-1)
@click.option('--root', '-r', type=click.Path(), help='Backup root directory')
@click.option('--class', '-k', 'backup_class', default='Weekly', show_default=True,
              help='Retention class of the new folder')
@click.option('--retain', '-n', type=int, help='Folders to keep for this class')
@click.option('--all', 'all_vms', is_flag=True, help='Export every VM on the platform')
@click.option('--as-job/--no-as-job', default=None, help='Run exports as background jobs')
@click.option('--confirm', is_flag=True, help='Ask before exporting each VM')
@click.option('--dry-run', is_flag=True, help='Show what would be deleted and created')
@click.pass_context
def rotate(ctx, names: tuple, root: Optional[str], backup_class: str, retain: Optional[int],
           all_vms: bool, as_job: Optional[bool], confirm: bool, dry_run: bool):
    """Rotate the backup folders of a class and export VMs into a new one."""
    config_obj = ctx.obj['config']
    notifier_obj = ctx.obj['notifier']

    root = root or config_obj.backup_root
    retain = retain if retain is not None else config_obj.retention_for(backup_class)
    as_job = config_obj.background_job if as_job is None else as_job

    if backup_class not in config_obj.backup_classes:
        click.echo(f"Unknown class '{backup_class}' (configured: {', '.join(config_obj.backup_classes)})", err=True)
        sys.exit(1)

    try:
        platform = _platform(ctx)
        manager = RotationManager(platform, notifier_obj)

        machine_names = list(names)
        if all_vms:
            machine_names.extend(platform.list_vms())

        if dry_run:
            plan = manager.plan(root, backup_class, retain)
            click.echo(f"🔍 Dry run - {len(plan.existing)} existing {backup_class} folders (retain {retain}):")
            if plan.to_delete:
                click.echo(f"Would delete: {plan.to_delete.name}")
            else:
                click.echo("No folder would be deleted.")
            click.echo(f"Would create: {plan.new_folder}")
            for name in machine_names:
                click.echo(f"  - export {name}")
            return

        prompt = None
        if confirm:
            def prompt(machine_name, folder):
                return click.confirm(f"Export '{machine_name}' to {folder}?", default=True)

        result = manager.rotate(root, backup_class, retain, machine_names, as_job, prompt)

        click.echo(f"\n📦 Backup folder: {result.folder}")
        if result.deleted:
            click.echo(f"Deleted: {result.deleted.name}")
        if result.deletion_error:
            click.echo(f"⚠️  {result.deletion_error}")
        for outcome in result.outcomes:
            line = f"  {outcome.machine_name}: {outcome.status}"
            if outcome.reason:
                line += f" ({outcome.reason})"
            click.echo(line)

        if result.has_failures:
            sys.exit(PARTIAL_FAILURE)

    except VMRotateError as e:
        notifier_obj.failure(f"Rotation aborted: {str(e)}")
        sys.exit(1)
    except ValueError as e:
        notifier_obj.error(str(e))
        sys.exit(1)


@cli.command('list')
@click.option('--root', '-r', type=click.Path(), help='Backup root directory')
@click.option('--class', '-k', 'backup_class', help='Only list this class')
@click.pass_context
def list_folders(ctx, root: Optional[str], backup_class: Optional[str]):
    """List backup folders per class, oldest first."""
    config_obj = ctx.obj['config']
    notifier_obj = ctx.obj['notifier']

    root = root or config_obj.backup_root
    classes = [backup_class] if backup_class else config_obj.backup_classes

    try:
        manager = RotationManager(_platform(ctx), notifier_obj)
        for name in classes:
            folders = manager.list_folders(root, name)
            click.echo(f"\n{name} ({len(folders)}/{config_obj.retention_for(name)}):")
            if not folders:
                click.echo("  No folders")
            for folder in folders:
                machines = sorted(p.name for p in folder.iterdir() if p.is_dir())
                click.echo(f"  📁 {folder.name}  {', '.join(machines) or '(empty)'}")

    except (VMRotateError, ValueError) as e:
        notifier_obj.error(f"Failed to list backups: {str(e)}")
        sys.exit(1)


@cli.command()
@click.argument('name')
@click.option('--root', '-r', type=click.Path(), help='Backup root directory')
@click.option('--all', 'show_all', is_flag=True, help='Show every backup, newest first')
@click.pass_context
def find(ctx, name: str, root: Optional[str], show_all: bool):
    """Show the latest backup of a VM."""
    config_obj = ctx.obj['config']
    notifier_obj = ctx.obj['notifier']

    root = root or config_obj.backup_root
    locator = BackupLocator(notification_manager=notifier_obj, classes=config_obj.backup_classes)

    try:
        backups = locator.list_backups(root, name) if show_all else [locator.find_latest(root, name)]
    except ValueError as e:
        notifier_obj.error(str(e))
        sys.exit(1)

    backups = [b for b in backups if b is not None]
    if not backups:
        click.echo(f"No backup found for: {name}")
        sys.exit(1)

    for backup in backups:
        click.echo(f"{backup.created_at:%Y-%m-%d %H:%M}  {backup.backup_class:<8} {backup.machine_path}")


@cli.command()
@click.argument('name')
@click.option('--root', '-r', type=click.Path(), help='Backup root directory')
@click.option('--descriptor', '-d', help='Descriptor file to import when there are several')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def restore(ctx, name: str, root: Optional[str], descriptor: Optional[str], yes: bool):
    """Import the latest backup of a VM as a new machine."""
    config_obj = ctx.obj['config']
    notifier_obj = ctx.obj['notifier']

    root = root or config_obj.backup_root

    try:
        locator = BackupLocator(_platform(ctx), notifier_obj, config_obj.backup_classes)

        latest = locator.find_latest(root, name)
        if latest is None:
            click.echo(f"No backup found for: {name}")
            sys.exit(1)

        if not yes and not click.confirm(f"Import '{name}' from {latest.path.name}?", default=True):
            click.echo("Restore cancelled.")
            return

        result = locator.import_latest(root, name, descriptor)
        click.echo(f"✅ Imported {result.machine_name} from {result.descriptor}")

    except (VMRotateError, ValueError) as e:
        notifier_obj.failure(f"Restore failed: {str(e)}")
        sys.exit(1)


@cli.command()
@click.pass_context
def vms(ctx):
    """List VMs on the configured platform."""
    notifier_obj = ctx.obj['notifier']

    try:
        platform = _platform(ctx)
        if not platform.is_available():
            click.echo(f"{platform.platform_name} is not available ('{platform.command_name}' not found).")
            sys.exit(1)

        names = platform.list_vms()
        if not names:
            click.echo("No VMs found")
            return
        click.echo(f"\n🖥️  {platform.platform_name.upper()}:")
        for vm_name in names:
            click.echo(f"  📱 {vm_name}")

    except (VMRotateError, ValueError) as e:
        notifier_obj.failure(f"Failed to list VMs: {str(e)}")
        sys.exit(1)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()
