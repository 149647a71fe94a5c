from __future__ import annotations

import json
import logging
import os
import sys
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterator

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from genxai.audit.ledger import AuditLedger
from genxai.audit.render import render_markdown_report
from genxai.bootstrap.loader import get_command, import_all
from genxai.bootstrap.manifests import MANIFESTS
from genxai.bootstrap.platform import current_platform, ensure_supported
from genxai.comfyui.background import set_comfyui_background_image
from genxai.comfyui.client import ComfyUIClient
from genxai.comfyui.paths import get_comfyui_model_path
from genxai.comfyui.process import stop_comfyui
from genxai.comfyui.workflow import generate_image
from genxai.config import load_settings
from genxai.deepstack.client import DeepStackClient
from genxai.deepstack.faces import register_all_faces
from genxai.errors import GenXAIError
from genxai.lmstudio import process as lms_process
from genxai.lmstudio.client import LMStudioClient
from genxai.lmstudio.paths import get_lmstudio_paths, is_lmstudio_installed
from genxai.lmstudio.query import invoke_llm_query
from genxai.queries import ai_settings
from genxai.queries.index import export_image_index, find_images
from genxai.queries.metadata import update_all_image_metadata
from genxai.tools.definitions import convert_to_function_definition
from genxai.tools.dispatch import format_output
from genxai.tools.model import ExposedCmdlet
from genxai.tools.policy import RateLimiter, load_tool_policy
from genxai.transcription.whisper import transcribe as transcribe_file
from genxai.translation.translate import translate_text

app = typer.Typer(help="GenXAI local AI service toolkit")
lmstudio_app = typer.Typer(help="LM Studio commands")
deepstack_app = typer.Typer(help="DeepStack face/object/scene commands")
comfyui_app = typer.Typer(help="ComfyUI commands")
images_app = typer.Typer(help="Image metadata and index commands")
prefs_app = typer.Typer(help="Preference commands")
audit_app = typer.Typer(help="Tool call audit commands")
modules_app = typer.Typer(help="Command module commands")
app.add_typer(lmstudio_app, name="lmstudio")
app.add_typer(deepstack_app, name="deepstack")
app.add_typer(comfyui_app, name="comfyui")
app.add_typer(images_app, name="images")
app.add_typer(prefs_app, name="prefs")
app.add_typer(audit_app, name="audit")
app.add_typer(modules_app, name="modules")
console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    settings: str = typer.Option("", "--settings", help="Path to settings YAML"),
) -> None:
    _configure_logging(verbose)
    if settings:
        os.environ["GENXAI_SETTINGS"] = settings


@contextmanager
def _errors() -> Iterator[None]:
    try:
        yield
    except (GenXAIError, FileNotFoundError, ValueError, TimeoutError) as exc:
        console.print(f"[red]ERROR[/red] {exc}")
        raise typer.Exit(2)


def _print_value(value: Any) -> None:
    if isinstance(value, (dict, list)):
        console.print_json(data=value)
    else:
        console.print(str(value))


def _confirm_tool_call(cmdlet: ExposedCmdlet, arguments: dict[str, Any]) -> bool:
    console.print(f"[yellow]Tool call[/yellow] {cmdlet.name}")
    console.print_json(data=json.loads(json.dumps(arguments, default=str)))
    return typer.confirm("Allow this call?", default=False)


def _auto_confirm(cmdlet: ExposedCmdlet, arguments: dict[str, Any]) -> bool:
    return True


def _ask_consent(question: str) -> bool:
    return typer.confirm(question, default=False)


@app.command("llm")
def llm(
    query: str = typer.Argument(..., help="Question or instruction for the model"),
    instructions: str = typer.Option("", "--instructions", "-i"),
    model: str = typer.Option("", "--model"),
    temperature: float = typer.Option(-1.0, "--temperature", help="Negative uses the configured value"),
    attach: list[Path] = typer.Option([], "--attach", help="Image to attach, repeatable"),
    tools: bool = typer.Option(True, "--tools/--no-tools", help="Expose configured commands to the model"),
    yes: bool = typer.Option(False, "--yes", help="Approve every tool call without asking"),
) -> None:
    with _errors():
        settings = load_settings()
        functions: list[dict[str, Any]] = []
        policy = load_tool_policy(settings.tools)
        if tools and policy.exposed:
            import_all()
            callables = {cmdlet.name: get_command(cmdlet.name) for cmdlet in policy.exposed}
            functions = convert_to_function_definition(callables, policy.exposed)
        answer = invoke_llm_query(
            query,
            instructions=instructions,
            model=model or None,
            temperature=temperature if temperature >= 0 else None,
            attachments=attach,
            functions=functions,
            exposed=policy.exposed,
            confirm=_auto_confirm if yes else _confirm_tool_call,
            settings=settings,
            ledger=AuditLedger.from_settings(settings),
            rate_limiter=RateLimiter(policy.rate_limits),
        )
    console.print(answer, markup=False)


@app.command("transcribe")
def transcribe(
    path: Path = typer.Argument(..., help="Audio or video file"),
    language: str = typer.Option("", "--language"),
    srt: bool = typer.Option(False, "--srt", help="Output SRT subtitles"),
    model: str = typer.Option("whisper-1", "--model"),
    output: str = typer.Option("", "--output", help="Write result to this file"),
) -> None:
    with _errors():
        text = transcribe_file(path, language=language or None, srt=srt, model=model)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        console.print(f"[green]OK[/green] wrote {output}")
    else:
        console.print(text, markup=False)


@app.command("translate")
def translate(
    text: str = typer.Argument("", help="Text to translate; omit to use --file or stdin"),
    file: str = typer.Option("", "--file"),
    language: str = typer.Option("English", "--language"),
    instructions: str = typer.Option("", "--instructions"),
    model: str = typer.Option("", "--model"),
    chunk_size: int = typer.Option(2000, "--chunk-size"),
) -> None:
    with _errors():
        if file:
            text = Path(file).read_text(encoding="utf-8")
        elif not text and not sys.stdin.isatty():
            text = sys.stdin.read()
        result = translate_text(
            text,
            language=language,
            instructions=instructions,
            model=model or None,
            chunk_size=chunk_size,
        )
    console.print(result, markup=False)


@app.command("findimages")
def findimages(
    keywords: list[str] = typer.Argument(None, help="Keywords, wildcards allowed"),
    people: list[str] = typer.Option([], "--people"),
    objects: list[str] = typer.Option([], "--objects"),
    scenes: list[str] = typer.Option([], "--scenes"),
    match_all: bool = typer.Option(False, "--all", help="Require every criterion to match"),
    directory: list[str] = typer.Option([], "--directory", help="Search these directories instead"),
    rebuild: bool = typer.Option(False, "--rebuild", help="Rebuild the index first"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    with _errors():
        results = find_images(
            keywords or [],
            people=people,
            objects=objects,
            scenes=scenes,
            match_all=match_all,
            directories=directory or None,
            rebuild=rebuild,
        )
    if as_json:
        console.print_json(data=[asdict(record) for record in results])
        return
    for record in results:
        summary = record.short_description or ", ".join(record.keywords)
        console.print(f"{record.path}  [dim]{summary}[/dim]")
    console.print(f"{len(results)} image(s)")


@lmstudio_app.command("paths")
def lmstudio_paths() -> None:
    console.print_json(data=asdict(get_lmstudio_paths()))


@lmstudio_app.command("status")
def lmstudio_status() -> None:
    installed = is_lmstudio_installed()
    running = lms_process.is_lmstudio_running()
    console.print(f"installed: {'[green]yes[/green]' if installed else '[red]no[/red]'}")
    console.print(f"running: {'[green]yes[/green]' if running else '[yellow]no[/yellow]'}")


@lmstudio_app.command("install")
def lmstudio_install(yes: bool = typer.Option(False, "--yes")) -> None:
    with _errors():
        installed = lms_process.install_lmstudio(consent=_ask_consent, force=yes)
    console.print("[green]installed[/green]" if installed else "nothing installed")


@lmstudio_app.command("start")
def lmstudio_start(
    show_window: bool = typer.Option(False, "--show-window"),
    timeout: float = typer.Option(30, "--timeout"),
    port: int = typer.Option(0, "--port", help="0 uses the configured port"),
    yes: bool = typer.Option(False, "--yes", help="Install without asking if missing"),
) -> None:
    with _errors():
        proc = lms_process.start_lmstudio(
            show_window=show_window,
            passthru=True,
            timeout=timeout,
            port=port or load_settings().lmstudio.port,
            consent=_ask_consent,
            force_install=yes,
        )
    console.print(f"[green]running[/green] pid={proc.pid if proc else '?'}")


@lmstudio_app.command("models")
def lmstudio_models(loaded: bool = typer.Option(False, "--loaded"), server: bool = typer.Option(False, "--server")) -> None:
    with _errors():
        if server:
            models = LMStudioClient.from_settings().list_models()
        elif loaded:
            models = lms_process.get_loaded_model_list()
        else:
            models = lms_process.get_model_list()
    console.print_json(data=models)


@lmstudio_app.command("mcp")
def lmstudio_mcp(
    name: str = typer.Option("GenXdev", "--name"),
    url: str = typer.Option("http://localhost:2175/mcp", "--url"),
    print_only: bool = typer.Option(False, "--print-only", help="Print the deeplink instead of opening it"),
) -> None:
    with _errors():
        link = lms_process.mcp_deeplink(name, url) if print_only else lms_process.add_mcp_server(name, url)
    console.print(link)


@deepstack_app.command("register-faces")
def deepstack_register_faces(
    directory: str = typer.Option("", "--dir", help="Known faces root"),
    force: bool = typer.Option(False, "--force", help="Re-register people already known"),
) -> None:
    with _errors():
        registered = register_all_faces(directory or None, force=force)
    for identifier, count in registered.items():
        console.print(f"[green]registered[/green] {identifier} ({count} image(s))")
    console.print(f"{len(registered)} person(s) registered")


@deepstack_app.command("faces")
def deepstack_faces() -> None:
    with _errors():
        faces = DeepStackClient.from_settings().list_faces()
    console.print_json(data=faces)


@deepstack_app.command("unregister")
def deepstack_unregister(identifier: str = typer.Argument(...)) -> None:
    with _errors():
        DeepStackClient.from_settings().unregister_face(identifier)
    console.print(f"unregistered {identifier}")


@deepstack_app.command("analyze")
def deepstack_analyze(
    image: Path = typer.Argument(...),
    min_confidence: float = typer.Option(0.5, "--min-confidence"),
) -> None:
    with _errors():
        client = DeepStackClient.from_settings()
        data = {
            "faces": [asdict(p) for p in client.recognize_faces(image, min_confidence=min_confidence)],
            "objects": [asdict(p) for p in client.detect_objects(image, min_confidence=min_confidence)],
            "scene": asdict(client.classify_scene(image)),
        }
    console.print_json(data=data)


@comfyui_app.command("model-path")
def comfyui_model_path(
    subfolder: str = typer.Option("checkpoints", "--subfolder"),
    return_all: bool = typer.Option(False, "--all"),
) -> None:
    result = get_comfyui_model_path(subfolder, return_all=return_all)
    if isinstance(result, list):
        for path in result:
            console.print(str(path))
    else:
        console.print(str(result))


@comfyui_app.command("background")
def comfyui_background(
    image: str = typer.Argument("", help="Image to use as canvas background"),
    clear: bool = typer.Option(False, "--clear"),
) -> None:
    with _errors():
        url = set_comfyui_background_image(image or None, clear=clear)
    console.print("[green]cleared[/green]" if clear else f"[green]set[/green] {url}")


@comfyui_app.command("stop")
def comfyui_stop() -> None:
    stopped = stop_comfyui()
    console.print(f"stopped {stopped} process(es)")


@comfyui_app.command("queue-empty")
def comfyui_queue_empty() -> None:
    empty = ComfyUIClient.from_settings().is_queue_empty()
    console.print("empty" if empty else "busy")
    if not empty:
        raise typer.Exit(1)


@comfyui_app.command("generate")
def comfyui_generate(
    prompt: str = typer.Argument(...),
    output: str = typer.Option(".", "--output"),
    negative: str = typer.Option("", "--negative"),
    model: str = typer.Option("", "--model"),
    width: int = typer.Option(1024, "--width"),
    height: int = typer.Option(1024, "--height"),
    steps: int = typer.Option(20, "--steps"),
    seed: int = typer.Option(-1, "--seed", help="Negative picks a random seed"),
) -> None:
    with _errors():
        saved = generate_image(
            prompt,
            output,
            negative_prompt=negative,
            model=model or None,
            width=width,
            height=height,
            steps=steps,
            seed=seed if seed >= 0 else None,
        )
    for path in saved:
        console.print(f"[green]saved[/green] {path}")


@images_app.command("update-metadata")
def images_update_metadata(
    directories: list[str] = typer.Argument(None),
    force: bool = typer.Option(False, "--force"),
    language: str = typer.Option("", "--language"),
    lmstudio: bool = typer.Option(True, "--lmstudio/--no-lmstudio"),
    deepstack: bool = typer.Option(True, "--deepstack/--no-deepstack"),
) -> None:
    with _errors():
        updated = update_all_image_metadata(
            directories or None,
            lmstudio=LMStudioClient.from_settings() if lmstudio else None,
            deepstack=DeepStackClient.from_settings() if deepstack else None,
            force=force,
            language=language or None,
        )
    console.print(f"updated {updated} image(s)")


@images_app.command("index")
def images_index(directories: list[str] = typer.Argument(None)) -> None:
    with _errors():
        count = export_image_index(directories or None)
    console.print(f"indexed {count} image(s)")


@images_app.command("add-dir")
def images_add_dir(
    directories: list[str] = typer.Argument(...),
    session_only: bool = typer.Option(False, "--session-only"),
) -> None:
    with _errors():
        merged = ai_settings.add_image_directories(directories, session_only=session_only)
    for directory in merged:
        console.print(directory)


@images_app.command("collection")
def images_collection() -> None:
    for directory in ai_settings.get_ai_image_collection():
        console.print(directory)


@prefs_app.command("meta-language")
def prefs_meta_language(
    language: str = typer.Argument("", help="Set the language; omit to show it"),
    session_only: bool = typer.Option(False, "--session-only"),
) -> None:
    with _errors():
        if language:
            ai_settings.set_ai_meta_language(language, session_only=session_only)
        console.print(ai_settings.get_ai_meta_language())


@prefs_app.command("faces-root")
def prefs_faces_root(
    path: str = typer.Argument("", help="Set the known faces directory; omit to show it"),
    session_only: bool = typer.Option(False, "--session-only"),
) -> None:
    with _errors():
        if path:
            ai_settings.set_ai_known_faces_rootpath(path, session_only=session_only)
        console.print(ai_settings.get_ai_known_faces_rootpath())


@prefs_app.command("index-path")
def prefs_index_path(
    path: str = typer.Argument("", help="Set the image index database; omit to show it"),
    session_only: bool = typer.Option(False, "--session-only"),
) -> None:
    with _errors():
        if path:
            ai_settings.set_image_index_path(path, session_only=session_only)
        console.print(ai_settings.get_image_index_path())


@audit_app.command("tail")
def audit_tail(lines: int = typer.Option(20, "--lines"), command: str = typer.Option("", "--command")) -> None:
    ledger = AuditLedger.from_settings()
    for event in ledger.tail(lines, command=command or None):
        console.print_json(data=event)


@audit_app.command("report")
def audit_report(
    format: str = typer.Option("md", "--format"),
    output: str = typer.Option("", "--output", help="Defaults to <state_dir>/audit/report.md"),
) -> None:
    if format != "md":
        raise typer.BadParameter("Only md format is supported")
    settings = load_settings()
    report = render_markdown_report(AuditLedger.from_settings(settings))
    output_path = Path(output) if output else settings.audit_dir / "report.md"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(report, encoding="utf-8")
    console.print(f"wrote {output_path}")


@modules_app.command("check")
def modules_check() -> None:
    info = current_platform()
    failed = False
    for manifest in MANIFESTS:
        try:
            ensure_supported(manifest.name, manifest.requirement, info)
        except GenXAIError as exc:
            failed = True
            console.print(f"[red]UNSUPPORTED[/red] {exc}")
            continue
        console.print(f"[green]OK[/green] {manifest.name} {manifest.version}")
    if failed:
        raise typer.Exit(2)


@modules_app.command("list")
def modules_list() -> None:
    with _errors():
        loaded = import_all()
    table = Table("Module", "Command", "Aliases")
    for module in loaded:
        aliases: dict[str, list[str]] = {}
        for alias, command in module.manifest.aliases.items():
            aliases.setdefault(command, []).append(alias)
        for command in module.commands:
            table.add_row(module.manifest.name, command, ", ".join(aliases.get(command, [])))
    console.print(table)


@modules_app.command("invoke")
def modules_invoke(
    name: str = typer.Argument(..., help="Command name or alias"),
    arguments: str = typer.Option("{}", "--args", help="Keyword arguments as a JSON object"),
) -> None:
    with _errors():
        try:
            kwargs = json.loads(arguments)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"--args is not valid JSON: {exc}")
        if not isinstance(kwargs, dict):
            raise typer.BadParameter("--args must be a JSON object")
        import_all()
        result = get_command(name)(**kwargs)
    if result is not None:
        _print_value(json.loads(format_output(result, as_text=False)))


def _alias(*prefix: str) -> None:
    app([*prefix, *sys.argv[1:]])


def llm_alias() -> None:
    _alias("llm")


def transcribe_alias() -> None:
    _alias("transcribe")


def translate_alias() -> None:
    _alias("translate")


def findimages_alias() -> None:
    _alias("findimages")


def addimgdir_alias() -> None:
    _alias("images", "add-dir")


def getimgmetalang_alias() -> None:
    _alias("prefs", "meta-language")


if __name__ == "__main__":
    app()
