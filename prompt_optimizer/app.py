"""Prompt Optimizer - Main Gradio UI Application."""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import gradio as gr

from .config import (
    LOG_LEVELS,
    get_storage_dir,
    load_env,
    load_user_config,
    validate_user_config,
)
from .editor import PromptEditor
from .errors import OptimizerError
from .history import PromptVersion, VersionHistoryStore
from .providers.base import ProviderError
from .providers.registry import ModelRegistry
from .storage import LocalStorage


logger = logging.getLogger(__name__)

# Global state
EDITOR: Optional[PromptEditor] = None
REGISTRY: Optional[ModelRegistry] = None

COPY_TO_CLIPBOARD_JS = """
async (text) => {
    if (!text) {
        return "";
    }
    try {
        await navigator.clipboard.writeText(text);
        return "copied";
    } catch (err) {
        // navigator.clipboard is missing outside secure contexts
        const area = document.createElement("textarea");
        area.value = text;
        area.style.position = "fixed";
        area.style.opacity = "0";
        document.body.appendChild(area);
        area.select();
        let copied = false;
        try {
            copied = document.execCommand("copy");
        } catch (fallbackErr) {
            copied = false;
        }
        document.body.removeChild(area);
        return copied ? "copied" : "failed";
    }
}
"""


def configure(config: Dict[str, Any], storage_dir: Optional[Path] = None) -> PromptEditor:
    """Build the editor and model registry used by the UI handlers."""
    global EDITOR, REGISTRY

    storage = LocalStorage(storage_dir or get_storage_dir(config))
    REGISTRY = ModelRegistry(config, storage=storage)
    EDITOR = PromptEditor(
        VersionHistoryStore(storage),
        REGISTRY,
        default_model=config.get("default_model", "deepseek-v3"),
    )
    logger.info("Using storage at %s", storage.root)
    return EDITOR


def get_editor() -> PromptEditor:
    """Get the configured editor."""
    if EDITOR is None:
        raise RuntimeError("Prompt optimizer is not configured; call configure() first")
    return EDITOR


def get_registry() -> ModelRegistry:
    """Get the configured model registry."""
    if REGISTRY is None:
        raise RuntimeError("Prompt optimizer is not configured; call configure() first")
    return REGISTRY


def raise_ui_error(error: OptimizerError, title: str):
    """Surface a failed action as a toast, leaving every output unchanged."""
    if isinstance(error, ProviderError):
        logger.error("%s: %s", title, error)
    else:
        logger.info("%s: %s", title, error)
    raise gr.Error(str(error), title=title) from error


# ============================================================================
# Rendering
# ============================================================================


def render_editor(history: List[PromptVersion], current_version: Optional[int]) -> tuple:
    """
    Render the prompt column.

    Returns:
        (version selector, prompt content, save/copy button, iterate button, current version)
    """
    editor = get_editor()
    current = editor.current(history, current_version)
    pointer = current.version if current else None

    return (
        gr.update(
            choices=[(str(v.version), v.version) for v in history],
            value=pointer,
        ),
        current.content if current else "",
        gr.update(value="📋 Copy"),
        gr.update(interactive=current is not None),
        pointer,
    )


def show_landing() -> tuple:
    """Visibility updates for the landing screen."""
    return gr.update(visible=True), gr.update(visible=False)


def show_editor() -> tuple:
    """Visibility updates for the editor screen."""
    return gr.update(visible=False), gr.update(visible=True)


# ============================================================================
# Section 1: Landing Screen
# ============================================================================


def load_app_ui() -> tuple:
    """Pick the screen to show on page load from the stored history."""
    history = get_editor().load()
    screens = show_editor() if history else show_landing()
    return (*screens, *render_editor(history, None))


def start_project_ui(prompt: str) -> tuple:
    """Write version 1 and switch to the editor."""
    try:
        history = get_editor().start_project(prompt)
    except OptimizerError as e:
        raise_ui_error(e, "Prompt required")

    return (*show_editor(), *render_editor(history, 1), None, "")


# ============================================================================
# Section 2: Prompt Versions
# ============================================================================


def complete_first_optimization_ui(current_version: Optional[int], model: str) -> tuple:
    """Optimize the empty first version right after landing."""
    editor = get_editor()
    current = editor.current(editor.load(), current_version)
    if current is None or not current.is_placeholder:
        return render_editor(editor.load(), current_version)
    return optimize_ui(current_version, model)


def optimize_ui(current_version: Optional[int], model: str) -> tuple:
    """Optimize the current version."""
    editor = get_editor()
    try:
        result = editor.optimize(current_version, model)
    except OptimizerError as e:
        raise_ui_error(e, "Optimization failed")

    if result is None:
        gr.Info("An optimization is already running", title="Busy")
        return render_editor(editor.load(), current_version)

    gr.Info(f"Optimized prompt saved as version {result.version}", title="Optimization succeeded")
    return render_editor(result.history, result.version)


def select_version_ui(version: Optional[int]) -> tuple:
    """Switch the editor to another version, discarding the edit buffer."""
    editor = get_editor()
    history = editor.load()
    if version is None:
        return render_editor(history, None)

    try:
        pointer = editor.select_version(history, int(version))
    except OptimizerError as e:
        raise_ui_error(e, "Version not found")

    return render_editor(history, pointer)


def edit_changed_ui(current_version: Optional[int], buffer: str) -> tuple:
    """Relabel the save/copy control and lock iteration while an edit is pending."""
    editor = get_editor()
    pending = editor.has_unsaved_edit(editor.load(), current_version, buffer)
    return (
        gr.update(value="✅ Save" if pending else "📋 Copy"),
        gr.update(interactive=not pending and current_version is not None),
    )


def save_or_copy_ui(current_version: Optional[int], buffer: str) -> tuple:
    """Commit a pending edit, or hand the current content to the clipboard."""
    editor = get_editor()
    history = editor.load()

    try:
        if editor.has_unsaved_edit(history, current_version, buffer):
            history = editor.save_edit(current_version, buffer)
            gr.Info("Your changes were saved", title="Saved")
            return (*render_editor(history, current_version), "")

        text = editor.copy_current(current_version)
    except OptimizerError as e:
        raise_ui_error(e, "Nothing to copy")

    return (*render_editor(history, current_version), text)


def copy_result_ui(status: str) -> None:
    """Report the outcome of the browser clipboard write."""
    if status == "copied":
        gr.Info("Prompt copied to clipboard", title="Copied")
    elif status == "failed":
        gr.Warning("Copy failed, please select the prompt and copy it manually", title="Copy failed")


def open_iterate_ui() -> dict:
    """Show the feedback form."""
    return gr.update(visible=True)


def close_iterate_ui() -> dict:
    """Hide the feedback form."""
    return gr.update(visible=False)


def iterate_ui(current_version: Optional[int], feedback: str, model: str) -> tuple:
    """Rewrite the current version from feedback and close the form."""
    editor = get_editor()
    try:
        result = editor.iterate(current_version, feedback, model)
    except OptimizerError as e:
        raise_ui_error(e, "Iteration failed")

    if result is None:
        gr.Info("An iteration is already running", title="Busy")
        return (*render_editor(editor.load(), current_version), gr.update(), feedback)

    gr.Info(f"Generated version {result.version}", title="Iteration succeeded")
    return (*render_editor(result.history, result.version), gr.update(visible=False), "")


# ============================================================================
# Section 3: Testing
# ============================================================================


def run_test_ui(current_version: Optional[int], test_input: str, model: str, test_result: Optional[dict]) -> tuple:
    """Run the current version against the sample input."""
    try:
        result = get_editor().run_test(current_version, test_input, model)
    except OptimizerError as e:
        raise_ui_error(e, "Test failed")

    if result is None:
        gr.Info("A test is already running", title="Busy")
        return (test_result or {}).get("output", ""), test_result

    return result.output, result.model_dump()


def new_project_ui() -> tuple:
    """Drop the project and return to the landing screen."""
    get_editor().new_project()
    gr.Info("Started a new project", title="New project")
    return (*show_landing(), *render_editor([], None), None, "", "", "")


# ============================================================================
# Section 4: Provider Credentials
# ============================================================================


def credential_status(provider: str) -> str:
    """Describe where a provider's API key comes from."""
    registry = get_registry()
    spec = registry.providers.get(provider or "")
    if spec is None:
        return ""
    if registry.get_credential(provider):
        return f"✅ API key for {provider} stored in local storage"
    try:
        registry.resolve_api_key(spec)
    except OptimizerError:
        return f"⚠️ No API key for {provider}. Enter one above or set {spec.api_key_env}"
    return f"✅ API key for {provider} taken from {spec.api_key_env}"


def save_credential_ui(provider: str, api_key: str) -> tuple:
    """Store or remove a provider API key."""
    try:
        get_registry().set_credential(provider, api_key)
    except OptimizerError as e:
        raise_ui_error(e, "Could not save API key")
    return "", credential_status(provider)


# ============================================================================
# Main UI
# ============================================================================


def create_ui() -> gr.Blocks:
    """Create Gradio UI."""
    registry = get_registry()
    editor = get_editor()
    model_choices = registry.choices()
    provider_names = sorted(registry.providers)

    with gr.Blocks(title="Prompt Optimizer") as demo:
        gr.Markdown("# ✨ Prompt Optimizer")

        current_version_state = gr.State(None)
        test_result_state = gr.State(None)

        # ====================================================================
        # Landing screen
        # ====================================================================

        with gr.Column(visible=True) as landing_screen:
            landing_prompt = gr.Textbox(
                label="Prompt",
                lines=12,
                placeholder="Enter the prompt you want to optimize...",
            )
            start_btn = gr.Button("Start optimizing →", variant="primary", size="lg")

        # ====================================================================
        # Editor screen
        # ====================================================================

        with gr.Column(visible=False) as editor_screen:
            with gr.Row():
                with gr.Column():
                    gr.Markdown("### Optimized Prompt")
                    version_radio = gr.Radio(choices=[], label="Version")
                    prompt_content = gr.Textbox(label="Prompt", lines=18, max_lines=40)

                    with gr.Row():
                        save_copy_btn = gr.Button("📋 Copy")
                        iterate_btn = gr.Button("✨ Iterate")
                        optimize_btn = gr.Button("⚡ Optimize")

                    with gr.Group(visible=False) as iterate_form:
                        gr.Markdown(
                            "Describe what falls short in the current output and what you expect instead. "
                            "The prompt will be rewritten based on your feedback."
                        )
                        feedback_input = gr.Textbox(
                            label="Feedback",
                            lines=6,
                            placeholder="e.g.\n- The translation reads awkwardly, make it more idiomatic\n"
                            "- The code review is shallow, point out more potential issues",
                        )
                        with gr.Row():
                            iterate_confirm_btn = gr.Button("Confirm", variant="primary")
                            iterate_cancel_btn = gr.Button("Cancel")

                with gr.Column():
                    gr.Markdown("### Content to Process")
                    test_input = gr.Textbox(
                        label="Test input",
                        lines=18,
                        placeholder="Enter real content to test the optimized prompt with, e.g. an article to "
                        "translate or code to review...",
                    )
                    with gr.Row():
                        test_btn = gr.Button("▶️ Test", variant="primary")
                        model_dropdown = gr.Dropdown(
                            choices=model_choices,
                            value=editor.default_model.value,
                            label="Model",
                        )

                with gr.Column():
                    gr.Markdown("### Output Preview")
                    test_output = gr.Textbox(
                        label="Output",
                        lines=18,
                        interactive=False,
                        placeholder="Test results will appear here...",
                    )
                    new_project_btn = gr.Button("➕ New project")

        with gr.Accordion("🔑 Provider API Keys", open=False):
            with gr.Row():
                provider_dropdown = gr.Dropdown(
                    choices=provider_names,
                    value=provider_names[0] if provider_names else None,
                    label="Provider",
                )
                api_key_input = gr.Textbox(
                    label="API Key",
                    type="password",
                    placeholder="Leave empty and save to remove the stored key",
                )
            save_key_btn = gr.Button("💾 Save API Key", size="sm")
            credential_status_box = gr.Textbox(label="Status", interactive=False, show_label=False)

        clipboard_text = gr.Textbox(visible=False)
        copy_status = gr.Textbox(visible=False)

        # ====================================================================
        # Event Handlers
        # ====================================================================

        editor_outputs = [version_radio, prompt_content, save_copy_btn, iterate_btn, current_version_state]
        screens = [landing_screen, editor_screen]

        demo.load(fn=load_app_ui, outputs=[*screens, *editor_outputs])
        demo.load(fn=credential_status, inputs=[provider_dropdown], outputs=[credential_status_box])

        start_btn.click(
            fn=start_project_ui,
            inputs=[landing_prompt],
            outputs=[*screens, *editor_outputs, test_result_state, test_output],
            trigger_mode="once",
        ).success(
            fn=complete_first_optimization_ui,
            inputs=[current_version_state, model_dropdown],
            outputs=editor_outputs,
        )

        version_radio.input(
            fn=select_version_ui,
            inputs=[version_radio],
            outputs=editor_outputs,
        )

        prompt_content.input(
            fn=edit_changed_ui,
            inputs=[current_version_state, prompt_content],
            outputs=[save_copy_btn, iterate_btn],
        )

        save_copy_btn.click(
            fn=save_or_copy_ui,
            inputs=[current_version_state, prompt_content],
            outputs=[*editor_outputs, clipboard_text],
        ).success(
            fn=None,
            inputs=[clipboard_text],
            outputs=[copy_status],
            js=COPY_TO_CLIPBOARD_JS,
        ).then(
            fn=copy_result_ui,
            inputs=[copy_status],
        )

        optimize_btn.click(
            fn=optimize_ui,
            inputs=[current_version_state, model_dropdown],
            outputs=editor_outputs,
            trigger_mode="once",
        )

        iterate_btn.click(fn=open_iterate_ui, outputs=[iterate_form])
        iterate_cancel_btn.click(fn=close_iterate_ui, outputs=[iterate_form])
        iterate_confirm_btn.click(
            fn=iterate_ui,
            inputs=[current_version_state, feedback_input, model_dropdown],
            outputs=[*editor_outputs, iterate_form, feedback_input],
            trigger_mode="once",
        )

        test_btn.click(
            fn=run_test_ui,
            inputs=[current_version_state, test_input, model_dropdown, test_result_state],
            outputs=[test_output, test_result_state],
            trigger_mode="once",
        )

        new_project_btn.click(
            fn=new_project_ui,
            outputs=[*screens, *editor_outputs, test_result_state, test_output, test_input, landing_prompt],
        )

        provider_dropdown.change(
            fn=credential_status,
            inputs=[provider_dropdown],
            outputs=[credential_status_box],
        )

        save_key_btn.click(
            fn=save_credential_ui,
            inputs=[provider_dropdown, api_key_input],
            outputs=[api_key_input, credential_status_box],
        )

    return demo


def main():
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(description="Prompt Optimizer - optimize and iterate on LLM prompts")
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Interface to bind the Gradio server to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=7860,
        help="Port to run Gradio server (default: 7860)",
    )
    parser.add_argument(
        "--storage-dir",
        type=str,
        default=None,
        help="Directory holding the project history and API keys (default: from user config)",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file with provider API keys (default: search upwards from cwd)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: from user config)",
    )

    args = parser.parse_args()

    load_env(args.env_file)
    config = load_user_config()

    logging.basicConfig(
        level=args.log_level or str(config.get("log_level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    for error in validate_user_config(config):
        logger.warning("Config: %s", error)

    storage_dir = Path(args.storage_dir).expanduser() if args.storage_dir else None
    editor = configure(config, storage_dir)

    print("✨ Prompt Optimizer")
    print(f"Storage: {editor.store.storage.root}")
    print(f"Starting server on {args.host}:{args.port}...")

    # Create and launch UI
    demo = create_ui()
    demo.queue()
    demo.launch(
        server_name=args.host,
        server_port=args.port,
        theme=gr.themes.Soft(),
    )


if __name__ == "__main__":
    main()
