"""CLI commands for reelpipe using Typer and Rich.

Implements the CLI commands:
- generate: Turn one topic into a video
- batch: Generate several videos concurrently
- trending: Show trending Reddit topics
- check: Validate system dependencies and list configured providers
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from reelpipe import validate_dependencies
from reelpipe.config import settings
from reelpipe.errors import ValidationError
from reelpipe.logging_config import configure_logging
from reelpipe.orchestrator.service import JobService
from reelpipe.schemas.job import Job, JobStatus, ProgressEvent, VideoStyle
from reelpipe.services.llm import is_configured
from reelpipe.services.reddit import TIME_FILTERS, RedditClient

app = typer.Typer(name="reelpipe", help="Turn a topic into a narrated slideshow video")
console = Console()


def _build_service() -> JobService:
    return JobService.from_settings(settings)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override logging.level"),
):
    """Configure logging before any command runs."""
    config = settings.logging
    if log_level:
        config = config.model_copy(update={"level": log_level})
    configure_logging(config, console=console)


@app.command()
def generate(
    topic: Optional[str] = typer.Argument(None, help="Topic of the video"),
    duration: Optional[int] = typer.Option(None, "--duration", "-d", help="Target duration in seconds"),
    style: Optional[VideoStyle] = typer.Option(None, "--style", "-s", help="Narration and format style"),
    captions: bool = typer.Option(True, "--captions/--no-captions", help="Burn captions into the video"),
    script_file: Optional[Path] = typer.Option(
        None, "--script-file", exists=True, dir_okay=False, help="Use this narration instead of generating one"
    ),
    from_reddit: Optional[str] = typer.Option(
        None, "--from-reddit", help="Use the hottest post of this subreddit as the topic"
    ),
):
    """Generate a video for a topic.

    Runs the full pipeline: script, images, narration, and video assembly.
    """
    # Fail-fast dependency validation
    try:
        validate_dependencies()
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)

    if topic is None and from_reddit is None:
        console.print("[red]Error:[/red] Provide a TOPIC or --from-reddit SUBREDDIT")
        raise typer.Exit(code=1)

    custom_script = script_file.read_text(encoding="utf-8") if script_file else None

    try:
        asyncio.run(_generate_async(topic, duration, style, captions, custom_script, from_reddit))
    except KeyboardInterrupt:
        console.print()
        console.print("[yellow]Interrupted.[/yellow]")
        raise typer.Exit(code=130)


async def _generate_async(
    topic: Optional[str],
    duration: Optional[int],
    style: Optional[VideoStyle],
    captions: bool,
    custom_script: Optional[str],
    from_reddit: Optional[str],
):
    """Async implementation of generate command."""
    if topic is None:
        topic = await _topic_from_reddit(from_reddit)
        console.print(f"[green]Topic from r/{from_reddit}:[/green] {topic}")

    service = _build_service()
    request = {"topic": topic, "include_captions": captions, "custom_script": custom_script}
    if duration is not None:
        request["duration_seconds"] = duration
    if style is not None:
        request["style"] = style

    try:
        job_id = service.submit(request)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)

    console.print(f"[green]Created job:[/green] {job_id}")
    console.print()

    try:
        with console.status("[bold green]Starting pipeline...") as status:

            def on_progress(event: ProgressEvent):
                if event.job_id == job_id:
                    status.update(f"[bold green][{event.progress_percent:3d}%] {event.message}")

            remove_listener = service.add_listener(on_progress)
            try:
                job = await service.wait(job_id)
            finally:
                remove_listener()

    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print()
        console.print("[yellow]Pipeline interrupted, cancelling job...[/yellow]")
        service.request_cancel(job_id)
        await service.shutdown()
        raise typer.Exit(code=130)

    await service.shutdown()
    _print_job(job)
    if job.status != JobStatus.COMPLETED:
        raise typer.Exit(code=1)


async def _topic_from_reddit(subreddit: str) -> str:
    async with RedditClient(settings.reddit) as reddit:
        try:
            topics = await reddit.get_hot(subreddit, limit=5)
        except Exception as e:
            console.print(f"[red]Error:[/red] Could not load r/{subreddit}: {str(e)}")
            raise typer.Exit(code=1)
    if not topics:
        console.print(f"[red]Error:[/red] No posts found in r/{subreddit}")
        raise typer.Exit(code=1)
    return topics[0].title


def _print_job(job: Job) -> None:
    status_color = _get_status_color(job.status)
    info_lines = [
        f"[bold]ID:[/bold] {job.id}",
        f"[bold]Topic:[/bold] {job.input.topic if len(job.input.topic) <= 80 else job.input.topic[:77] + '...'}",
        f"[bold]Status:[/bold] [{status_color}]{job.status.value}[/{status_color}]",
        f"[bold]Style:[/bold] {job.input.style.value if job.input.style else '-'}",
        f"[bold]Progress:[/bold] {job.progress_percent}%",
    ]
    for stage, record in job.stage_records.items():
        elapsed = f" in {record.elapsed_seconds:.1f}s" if record.elapsed_seconds is not None else ""
        info_lines.append(f"[bold]{stage.value.capitalize()}:[/bold] {record.status.value}{elapsed}")

    video = job.artifacts.video
    if video is not None:
        info_lines.append(f"[bold]Output:[/bold] [green]{video.location}[/green]")
        info_lines.append(
            f"[bold]Video:[/bold] {video.resolution}, {video.duration_seconds:.1f}s, "
            f"{video.file_size_bytes / 1_000_000:.1f} MB"
        )
        if video.thumbnail_location:
            info_lines.append(f"[bold]Thumbnail:[/bold] {video.thumbnail_location}")
    if job.error is not None:
        info_lines.append(
            f"[bold]Error:[/bold] [red]{job.error.stage.value} failed: {job.error.message}[/red]"
        )

    console.print(Panel("\n".join(info_lines), title="[bold]Job Status[/bold]", border_style="blue"))


@app.command()
def batch(
    topics: list[str] = typer.Argument(..., help="Topics to generate videos for"),
    duration: Optional[int] = typer.Option(None, "--duration", "-d", help="Target duration in seconds"),
    style: Optional[VideoStyle] = typer.Option(None, "--style", "-s", help="Narration and format style"),
    captions: bool = typer.Option(True, "--captions/--no-captions", help="Burn captions into the videos"),
):
    """Generate videos for several topics concurrently."""
    try:
        validate_dependencies()
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)

    try:
        asyncio.run(_batch_async(topics, duration, style, captions))
    except KeyboardInterrupt:
        console.print()
        console.print("[yellow]Interrupted.[/yellow]")
        raise typer.Exit(code=130)


async def _batch_async(
    topics: list[str],
    duration: Optional[int],
    style: Optional[VideoStyle],
    captions: bool,
):
    """Async implementation of batch command."""
    service = _build_service()
    job_ids = []
    for topic in topics:
        request = {"topic": topic, "include_captions": captions}
        if duration is not None:
            request["duration_seconds"] = duration
        if style is not None:
            request["style"] = style
        try:
            job_ids.append(service.submit(request))
        except ValidationError as e:
            console.print(f"[yellow]Skipping {topic!r}:[/yellow] {str(e)}")

    if not job_ids:
        console.print("[red]Error:[/red] No valid topics to generate")
        raise typer.Exit(code=1)

    try:
        with console.status(f"[bold green]Generating {len(job_ids)} videos..."):
            jobs = await asyncio.gather(*(service.wait(job_id) for job_id in job_ids))
    except (KeyboardInterrupt, asyncio.CancelledError):
        for job_id in job_ids:
            service.request_cancel(job_id)
        await service.shutdown()
        raise typer.Exit(code=130)
    await service.shutdown()

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("ID", style="dim")
    table.add_column("Topic")
    table.add_column("Status")
    table.add_column("Output / Error")

    for job in jobs:
        status_color = _get_status_color(job.status)
        if job.artifacts.video is not None:
            detail = job.artifacts.video.location
        elif job.error is not None:
            detail = f"[red]{job.error.stage.value}: {job.error.message[:60]}[/red]"
        else:
            detail = "-"
        topic_display = job.input.topic if len(job.input.topic) <= 40 else job.input.topic[:37] + "..."
        table.add_row(
            job.id[:8] + "...",
            topic_display,
            f"[{status_color}]{job.status.value}[/{status_color}]",
            detail,
        )

    console.print(table)
    if any(job.status != JobStatus.COMPLETED for job in jobs):
        raise typer.Exit(code=1)


@app.command()
def trending(
    subreddit: Optional[str] = typer.Option(None, "--subreddit", "-r", help="Subreddit to read"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of posts"),
    sort: str = typer.Option("hot", "--sort", help="hot or top"),
    time_filter: str = typer.Option("day", "--time", "-t", help=f"Time window for top: {', '.join(TIME_FILTERS)}"),
):
    """List trending Reddit posts to use as video topics."""
    if sort not in ("hot", "top"):
        console.print(f"[red]Error:[/red] --sort must be hot or top, got {sort}")
        raise typer.Exit(code=1)
    if time_filter not in TIME_FILTERS:
        console.print(f"[red]Error:[/red] --time must be one of {', '.join(TIME_FILTERS)}")
        raise typer.Exit(code=1)

    asyncio.run(_trending_async(subreddit, limit, sort, time_filter))


async def _trending_async(subreddit: Optional[str], limit: Optional[int], sort: str, time_filter: str):
    """Async implementation of trending command."""
    subreddit = subreddit or settings.reddit.default_subreddit
    async with RedditClient(settings.reddit) as reddit:
        try:
            if sort == "top":
                topics = await reddit.get_top(subreddit, time_filter=time_filter, limit=limit)
            else:
                topics = await reddit.get_hot(subreddit, limit=limit)
        except Exception as e:
            console.print(f"[red]Error:[/red] Could not load r/{subreddit}: {str(e)}")
            raise typer.Exit(code=1)

    if not topics:
        console.print("[yellow]No posts found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold blue", title=f"r/{subreddit} ({sort})")
    table.add_column("Score", justify="right")
    table.add_column("Comments", justify="right")
    table.add_column("Subreddit", style="dim")
    table.add_column("Title")

    for topic in topics:
        title = topic.title if len(topic.title) <= 80 else topic.title[:77] + "..."
        table.add_row(str(topic.score), str(topic.num_comments), topic.subreddit, title)

    console.print(table)


@app.command()
def check():
    """Validate ffmpeg/ffprobe and show which providers are configured."""
    dependencies_ok = True
    try:
        validate_dependencies()
    except RuntimeError as e:
        dependencies_ok = False
        console.print(f"[red]Error:[/red] {str(e)}")

    images = settings.images
    features = [
        ("ffmpeg / ffprobe", dependencies_ok, "required"),
        (
            "Script generation",
            is_configured(settings.llm.script_model, settings),
            settings.llm.script_model,
        ),
        ("Pexels", bool(images.pexels_api_key), "images.pexels_api_key"),
        ("Unsplash", bool(images.unsplash_access_key), "images.unsplash_access_key"),
        ("Pixabay", bool(images.pixabay_api_key), "images.pixabay_api_key"),
        ("Placeholder images", images.placeholder_fallback, "images.placeholder_fallback"),
        ("Text-to-Speech", True, f"{settings.speech.voice_name} (Application Default Credentials)"),
        ("Reddit topics", True, f"r/{settings.reddit.default_subreddit}"),
    ]

    table = Table(show_header=True, header_style="bold blue", title="System status")
    table.add_column("Feature")
    table.add_column("Available")
    table.add_column("Details", style="dim")
    for name, available, details in features:
        mark = "[green]✓[/green]" if available else "[red]✗[/red]"
        table.add_row(name, mark, details)
    console.print(table)

    if not dependencies_ok:
        raise typer.Exit(code=1)


def _get_status_color(status: JobStatus) -> str:
    """Get Rich color for a job status.

    Color coding:
    - completed: green
    - failed: red
    - running: yellow
    - queued/cancelled: dim
    """
    if status == JobStatus.COMPLETED:
        return "green"
    elif status == JobStatus.FAILED:
        return "red"
    elif status == JobStatus.RUNNING:
        return "yellow"
    elif status in (JobStatus.QUEUED, JobStatus.CANCELLED):
        return "dim"
    else:
        return "white"
