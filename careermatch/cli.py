#!/usr/bin/env python3
"""
CareerMatch CLI - command-line interface for the matching core.
"""

import json

import click
from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from .config import ConfigManager
from .errors import CareerMatchError
from .logging_setup import setup_logging

console = Console()


def _open_services(ctx):
    from .services import build_services
    return build_services(ctx.obj["config"])


@click.group()
@click.version_option(version="0.1.0")
@click.option("--config-dir", default=".", type=click.Path(file_okay=False),
              help="Directory holding careermatch.config.json and .env")
@click.pass_context
def main(ctx, config_dir):
    """CareerMatch - semantic job matching with cached scores."""
    config = ConfigManager(config_dir)
    setup_logging(config.get("logging", "level"))
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.group()
def profiles():
    """Manage candidate profiles."""
    pass


@profiles.command("add")
@click.option("--user", "user_id", required=True, help="Owner user id")
@click.option("--file", "data_file", type=click.Path(exists=True, dir_okay=False), required=True,
              help="Resume JSON file")
@click.option("--inactive", is_flag=True, help="Do not make this the user's active profile")
@click.pass_context
def add_profile(ctx, user_id, data_file, inactive):
    """Add a profile from a resume JSON file."""
    with open(data_file, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid resume JSON: {e}[/red]")
            raise click.Abort()

    with _open_services(ctx) as services:
        profile_id = services.db.add_profile(user_id, data, is_active=not inactive)
        console.print(f"[green]✓ Added profile {profile_id} for user {user_id}[/green]")


@profiles.command("list")
@click.option("--user", "user_id", help="Filter by user id")
@click.pass_context
def list_profiles(ctx, user_id):
    """List stored profiles."""
    with _open_services(ctx) as services:
        rows = services.db.get_profiles(user_id=user_id)

        if not rows:
            console.print("[yellow]No profiles found[/yellow]")
            return

        table = Table(title=f"Profiles ({len(rows)})")
        table.add_column("ID", style="cyan", width=6)
        table.add_column("User", style="green")
        table.add_column("Active", style="bold")
        table.add_column("Version", style="dim")
        table.add_column("Embedding", style="magenta")

        for profile in rows:
            if profile.embedding is None:
                embedding_state = "none"
            elif services.cache.is_stale(profile):
                embedding_state = "stale"
            else:
                embedding_state = f"{profile.embedding.shape[0]}d"
            table.add_row(
                str(profile.id),
                profile.user_id,
                "✓" if profile.is_active else "",
                str(profile.content_version),
                embedding_state
            )

        console.print(table)


@profiles.command("activate")
@click.argument("profile_id", type=int)
@click.pass_context
def activate_profile(ctx, profile_id):
    """Make a profile its user's active profile."""
    with _open_services(ctx) as services:
        if services.db.set_active_profile(profile_id):
            console.print(f"[green]✓ Profile {profile_id} is now active[/green]")
        else:
            console.print(f"[red]Profile {profile_id} not found[/red]")


@profiles.command("embed")
@click.argument("profile_id", type=int)
@click.pass_context
def embed_profile(ctx, profile_id):
    """Generate or refresh a profile's embedding without rescoring."""
    with _open_services(ctx) as services:
        try:
            vector = services.engine.update_profile_embedding(profile_id)
        except CareerMatchError as e:
            console.print(f"[red]Error embedding profile: {e}[/red]")
            raise click.Abort()
        console.print(f"[green]✓ Profile {profile_id} embedding ready ({vector.shape[0]} dimensions)[/green]")


@main.group()
def jobs():
    """Manage job postings."""
    pass


@jobs.command("add")
@click.option("--title", required=True, help="Job title")
@click.option("--company", required=True, help="Company name")
@click.option("--description", default="", help="Job description text")
@click.option("--location", help="Job location")
@click.option("--link", help="Posting URL")
@click.pass_context
def add_job(ctx, title, company, description, location, link):
    """Add a job posting."""
    with _open_services(ctx) as services:
        job_id = services.db.add_job(title, company, link=link,
                                     description=description, location=location)
        console.print(f"[green]✓ Added job {job_id}: {title} at {company}[/green]")


@jobs.command("list")
@click.option("--limit", type=int, default=50, help="Maximum jobs to display")
@click.pass_context
def list_jobs(ctx, limit):
    """List stored job postings, most recent first."""
    with _open_services(ctx) as services:
        rows = services.db.get_jobs(limit=limit)

        if not rows:
            console.print("[yellow]No jobs found[/yellow]")
            return

        table = Table(title=f"Job Listings ({len(rows)} of {services.db.get_job_count()})")
        table.add_column("ID", style="cyan", width=6)
        table.add_column("Company", style="green")
        table.add_column("Title", style="bold")
        table.add_column("Location", style="magenta")
        table.add_column("Embedded", style="blue")

        for job in rows:
            table.add_row(
                str(job.id),
                job.company,
                job.title[:40] + "..." if len(job.title) > 40 else job.title,
                job.location or "N/A",
                "✓" if job.embedding_hash else ""
            )

        console.print(table)


@jobs.command("embed")
@click.option("--force", is_flag=True, help="Force regeneration of existing embeddings")
@click.pass_context
def embed_jobs(ctx, force):
    """Generate embeddings for jobs that are missing or stale."""
    with _open_services(ctx) as services:
        with Progress() as progress:
            task = progress.add_task("Generating embeddings...", total=None)

            def advance(done, total):
                progress.update(task, completed=done, total=total)

            ready, failures = services.cache.refresh_job_embeddings(force=force, on_progress=advance)

        console.print(f"[green]Generated {ready} job embeddings[/green]")
        for entity, error in failures:
            console.print(f"[red]Job {entity.id}: {error}[/red]")

        stats = services.db.get_embedding_stats(services.provider.model)
        console.print(f"\n[cyan]Embedding Coverage:[/cyan]")
        console.print(f"Jobs: {stats['jobs']['with_embeddings']}/{stats['jobs']['total']} ({stats['jobs']['coverage_percent']}%)")
        console.print(f"Profiles: {stats['profiles']['with_embeddings']}/{stats['profiles']['total']} ({stats['profiles']['coverage_percent']}%)")


@main.group()
def scores():
    """Compute cached match scores."""
    pass


@scores.command("refresh")
@click.option("--user", "user_id", help="Refresh the user's active profile")
@click.option("--profile-id", type=int, multiple=True, help="Profile id(s) to rescore")
@click.option("--timeout", type=float, help="Overall batch timeout in seconds")
@click.pass_context
def refresh_scores(ctx, user_id, profile_id, timeout):
    """Recompute match scores for a user or specific profiles."""
    if not user_id and not profile_id:
        console.print("[red]Provide --user or --profile-id[/red]")
        raise click.Abort()

    with _open_services(ctx) as services:
        if user_id:
            try:
                reports = {"user " + user_id: services.engine.refresh_for_user(user_id, timeout=timeout)}
            except CareerMatchError as e:
                console.print(f"[red]Error refreshing scores: {e}[/red]")
                raise click.Abort()
        else:
            for pid in profile_id:
                try:
                    services.engine.update_profile_embedding(pid)
                except CareerMatchError as e:
                    console.print(f"[yellow]Profile {pid}: {e}[/yellow]")
            reports = services.engine.compute_for_profiles(profile_id, timeout=timeout)

        table = Table(title="Scoring Results")
        table.add_column("Target", style="cyan")
        table.add_column("Written", style="green")
        table.add_column("No Embedding", style="yellow")
        table.add_column("Failed", style="red")
        table.add_column("Timed Out", style="dim")

        for target, report in reports.items():
            if isinstance(report, CareerMatchError):
                table.add_row(str(target), "0", "-", "-", f"error: {report}")
                continue
            table.add_row(
                str(target),
                str(report.written),
                str(report.skipped_missing),
                str(report.failed),
                "yes" if report.timed_out else ""
            )

        console.print(table)


@main.group()
def matches():
    """Show ranked matches."""
    pass


@matches.command("show")
@click.option("--user", "user_id", required=True, help="User whose active profile to rank for")
@click.option("--limit", type=int, default=10, help="Number of top matches to show")
@click.pass_context
def show_matches(ctx, user_id, limit):
    """Show ranked jobs for a user's active profile."""
    with _open_services(ctx) as services:
        results = services.queries.get_matched_jobs_for_user(user_id)

        if not results:
            console.print("[yellow]No jobs found.[/yellow]")
            return

        display = results[:limit]
        table = Table(title=f"Top {len(display)} of {len(results)} Jobs for {user_id}")
        table.add_column("Rank", style="dim", width=6)
        table.add_column("Score", style="bold green", width=8)
        table.add_column("Match", style="green", width=6)
        table.add_column("Job Title", style="bold")
        table.add_column("Company", style="yellow")
        table.add_column("Location", style="magenta")

        for i, item in enumerate(display, 1):
            table.add_row(
                str(i),
                f"{item.score:.3f}" if item.scored else "-",
                str(item.display_score),
                item.job.title,
                item.job.company,
                item.job.location or "N/A"
            )

        console.print(table)


@main.group()
def config():
    """Configure system settings."""
    pass


@config.command("show")
@click.option("--section", help="Show specific configuration section only")
@click.pass_context
def show_config(ctx, section):
    """Display current configuration."""
    config_manager = ctx.obj["config"]

    if section:
        section_data = config_manager.get(section)
        if section_data:
            console.print(f"[bold cyan]{section.title()} Configuration:[/bold cyan]")
            for key, value in section_data.items():
                console.print(f"  {key}: {value}")
        else:
            console.print(f"[red]Configuration section '{section}' not found[/red]")
    else:
        config_manager.display_config()


@config.command("set")
@click.argument("section")
@click.argument("key")
@click.argument("value")
@click.pass_context
def set_config(ctx, section, key, value):
    """Set configuration value (format: section key value)."""
    config_manager = ctx.obj["config"]

    existing_value = config_manager.get(section, key)
    if existing_value is not None:
        try:
            value = ConfigManager.coerce(existing_value, value)
        except ValueError:
            console.print(f"[red]Invalid value for {section}.{key}: {value}[/red]")
            return

    if config_manager.set(section, key, value):
        console.print(f"[green]✓ Set {section}.{key} = {value}[/green]")
    else:
        console.print(f"[red]✗ Failed to set configuration[/red]")


@config.command("env")
@click.argument("key")
@click.argument("value")
@click.pass_context
def set_env_var(ctx, key, value):
    """Set environment variable in .env file."""
    if ctx.obj["config"].set_env_var(key, value):
        console.print(f"[green]✓ Set environment variable {key}[/green]")
    else:
        console.print(f"[red]✗ Failed to set environment variable[/red]")


@config.command("validate")
@click.pass_context
def validate_config(ctx):
    """Validate current configuration."""
    issues = ctx.obj["config"].validate_config()
    if not issues:
        console.print("[green]✓ Configuration is valid[/green]")
        return

    console.print(f"[yellow]Found {len(issues)} configuration issue(s):[/yellow]")
    for issue in issues:
        console.print(f"  • {issue}")


@main.command("status")
@click.pass_context
def status(ctx):
    """Show system status and statistics."""
    console.print("[bold green]CareerMatch System Status[/bold green]")

    table = Table(title="System Overview")
    table.add_column("Component", style="cyan", no_wrap=True)
    table.add_column("Status", style="magenta")
    table.add_column("Details", style="green")

    with _open_services(ctx) as services:
        stats = services.db.get_embedding_stats(services.provider.model)
        table.add_row("Database", "Connected", str(services.db.db_path))
        table.add_row("Jobs", str(stats["jobs"]["total"]),
                      f"{stats['jobs']['coverage_percent']}% embedded")
        table.add_row("Profiles", str(stats["profiles"]["total"]),
                      f"{stats['profiles']['coverage_percent']}% embedded")
        table.add_row("Scores", str(services.db.get_match_count()), "Cached match rows")

        status_info = services.provider.get_status()
        if status_info["connection"] and status_info["model_ready"]:
            table.add_row("Ollama", "Ready", f"Model: {status_info['model']}")
        elif status_info["connection"]:
            table.add_row("Ollama", "Connected", f"Model not ready: {status_info['model']}")
        else:
            table.add_row("Ollama", "Offline", status_info.get("error") or "Connection failed")

    console.print(table)


@main.command("serve")
@click.option("--host", help="Bind address (default from config)")
@click.option("--port", type=int, help="Port (default from config)")
@click.pass_context
def serve(ctx, host, port):
    """Run the HTTP API."""
    from .webapp import create_app

    config_manager = ctx.obj["config"]
    host = host or config_manager.get("server", "host")
    port = port or config_manager.get("server", "port")

    for issue in config_manager.validate_config():
        console.print(f"[yellow]Warning: {issue}[/yellow]")

    with _open_services(ctx) as services:
        app = create_app(services)
        console.print(f"[cyan]Serving CareerMatch API on http://{host}:{port}[/cyan]")
        app.extensions["socketio"].run(app, host=host, port=port, debug=False,
                                       allow_unsafe_werkzeug=True)


if __name__ == "__main__":
    main()
