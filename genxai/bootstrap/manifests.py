from __future__ import annotations

from dataclasses import dataclass, field

from genxai.errors import ModuleLoadError

from .platform import PlatformRequirement


@dataclass(slots=True)
class ModuleManifest:
    name: str
    version: str
    description: str
    commands: dict[str, str]
    aliases: dict[str, str] = field(default_factory=dict)
    requirement: PlatformRequirement = field(default_factory=PlatformRequirement)

    def __post_init__(self) -> None:
        for command, target in self.commands.items():
            if ":" not in target:
                raise ModuleLoadError(f"{self.name}: command {command} target must be 'module:callable', got {target!r}")
        exported = {command.lower() for command in self.commands}
        for alias, command in self.aliases.items():
            if command.lower() not in exported:
                raise ModuleLoadError(f"{self.name}: alias {alias} points to unknown command {command}")


CORE = ModuleManifest(
    name="GenXdev.AI",
    version="1.0.0",
    description="Tool-call dispatch, vector similarity, hardware probes and diff tool launcher",
    commands={
        "Invoke-CommandFromToolCall": "genxai.tools.dispatch:invoke_command_from_tool_call",
        "ConvertTo-LMStudioFunctionDefinition": "genxai.tools.definitions:convert_to_function_definition",
        "Convert-TypeToLLMType": "genxai.tools.definitions:python_type_to_llm_type",
        "Get-VectorSimilarity": "genxai.core.similarity:get_vector_similarity",
        "Get-CpuCore": "genxai.core.hardware:get_cpu_core",
        "Get-NumberOfCpuCores": "genxai.core.hardware:get_number_of_cpu_cores",
        "Get-HasCapableGpu": "genxai.core.hardware:get_has_capable_gpu",
        "Invoke-WinMerge": "genxai.core.difftool:invoke_diff_tool",
        "Test-DeepLinkImageFile": "genxai.queries.images:validate_image_file",
    },
)

LMSTUDIO = ModuleManifest(
    name="GenXdev.AI.LMStudio",
    version="1.0.0",
    description="LM Studio discovery, installation, process control and model listing",
    commands={
        "Get-LMStudioPaths": "genxai.lmstudio.paths:get_lmstudio_paths",
        "Test-LMStudioInstallation": "genxai.lmstudio.paths:is_lmstudio_installed",
        "Test-LMStudioProcess": "genxai.lmstudio.process:is_lmstudio_running",
        "Install-LMStudioApplication": "genxai.lmstudio.process:install_lmstudio",
        "Start-LMStudioApplication": "genxai.lmstudio.process:start_lmstudio",
        "Get-LMStudioModelList": "genxai.lmstudio.process:get_model_list",
        "Get-LMStudioLoadedModelList": "genxai.lmstudio.process:get_loaded_model_list",
        "Add-GenXdevMCPServerToLMStudio": "genxai.lmstudio.process:add_mcp_server",
    },
)

DEEPSTACK = ModuleManifest(
    name="GenXdev.AI.DeepStack",
    version="1.0.0",
    description="Face registration, face recognition, object detection and scene classification",
    commands={
        "Register-Face": "genxai.deepstack.commands:register_face",
        "Register-AllFaces": "genxai.deepstack.faces:register_all_faces",
        "Unregister-Face": "genxai.deepstack.commands:unregister_face",
        "Get-RegisteredFaces": "genxai.deepstack.commands:get_registered_faces",
        "Invoke-ImageFacesRecognition": "genxai.deepstack.commands:recognize_faces",
        "Invoke-ImageObjectsDetection": "genxai.deepstack.commands:detect_objects",
        "Invoke-ImageScenesClassification": "genxai.deepstack.commands:classify_scene",
    },
)

COMFYUI = ModuleManifest(
    name="GenXdev.AI.ComfyUI",
    version="1.0.0",
    description="ComfyUI model paths, canvas settings, queue control and image generation",
    commands={
        "Get-ComfyUIModelPath": "genxai.comfyui.paths:get_comfyui_model_path",
        "Set-ComfyUIBackgroundImage": "genxai.comfyui.background:set_comfyui_background_image",
        "Stop-ComfyUI": "genxai.comfyui.process:stop_comfyui",
        "Test-ComfyUIQueueEmpty": "genxai.comfyui.client:is_comfyui_queue_empty",
        "Invoke-ComfyUIImageGeneration": "genxai.comfyui.workflow:generate_image",
    },
)

QUERIES = ModuleManifest(
    name="GenXdev.AI.Queries",
    version="1.0.0",
    description="LLM queries, transcription, translation, image metadata and preferences",
    commands={
        "Invoke-LLMQuery": "genxai.lmstudio.query:invoke_llm_query",
        "Get-MediaFileAudioTranscription": "genxai.transcription.whisper:transcribe",
        "Get-TextTranslation": "genxai.translation.translate:translate_text",
        "Find-Image": "genxai.queries.index:find_images",
        "Export-ImageIndex": "genxai.queries.index:export_image_index",
        "Update-ImageMetaData": "genxai.queries.metadata:update_image_metadata",
        "Update-AllImageMetaData": "genxai.queries.metadata:update_all_image_metadata",
        "Get-AIMetaLanguage": "genxai.queries.ai_settings:get_ai_meta_language",
        "Set-AIMetaLanguage": "genxai.queries.ai_settings:set_ai_meta_language",
        "Get-AIKnownFacesRootpath": "genxai.queries.ai_settings:get_ai_known_faces_rootpath",
        "Set-AIKnownFacesRootpath": "genxai.queries.ai_settings:set_ai_known_faces_rootpath",
        "Get-ImageIndexPath": "genxai.queries.ai_settings:get_image_index_path",
        "Set-ImageIndexPath": "genxai.queries.ai_settings:set_image_index_path",
        "Get-AIImageCollection": "genxai.queries.ai_settings:get_ai_image_collection",
        "Set-AIImageCollection": "genxai.queries.ai_settings:set_ai_image_collection",
        "Add-ImageDirectories": "genxai.queries.ai_settings:add_image_directories",
    },
    aliases={
        "llm": "Invoke-LLMQuery",
        "qlms": "Invoke-LLMQuery",
        "transcribe": "Get-MediaFileAudioTranscription",
        "translate": "Get-TextTranslation",
        "findimages": "Find-Image",
        "addimgdir": "Add-ImageDirectories",
        "getimgmetalang": "Get-AIMetaLanguage",
    },
)

MANIFESTS: tuple[ModuleManifest, ...] = (CORE, LMSTUDIO, DEEPSTACK, COMFYUI, QUERIES)


def get_manifest(name: str) -> ModuleManifest:
    for manifest in MANIFESTS:
        if manifest.name.lower() == name.lower():
            return manifest
    raise ModuleLoadError(f"Unknown module: {name}")
