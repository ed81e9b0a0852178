import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from fastapi.concurrency import run_in_threadpool

from archive import (
    DiscoveredFile,
    discover_code_files,
    extract_archive,
    pack_directory,
    pack_files,
)
from errors import ConversionFailedError, ModelInvocationError, UnparsableResponseError
from parsing import Raw, parse_file_response, parse_project_response
from prompts import (
    build_file_prompt,
    build_project_context,
    build_project_prompt,
    read_source,
    render_project_code,
)
from settings import ConversionMode

logger = logging.getLogger("StackMorph.converter")


@dataclass(frozen=True)
class ConversionRequest:
    source_archive: bytes
    filename: str
    target_stack: str
    mode: ConversionMode


@dataclass
class ConversionResult:
    archive: bytes
    converted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "converted": len(self.converted),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "failed_files": self.failed,
        }


class StackConverter:
    def __init__(self, model_client, strict_raw_output: bool = False):
        self.model_client = model_client
        self.strict_raw_output = strict_raw_output

    async def convert(self, request: ConversionRequest, workspace: Path) -> ConversionResult:
        source_dir = workspace / "source"
        await run_in_threadpool(extract_archive, request.source_archive, source_dir)
        logger.info(f"Extracted project to: {source_dir}")

        code_files = await run_in_threadpool(discover_code_files, source_dir)
        logger.info(f"Found {len(code_files)} code files to process.")

        if request.mode == ConversionMode.FILE:
            return await self.convert_files(request.target_stack, source_dir, code_files)
        return await self.convert_project(request.target_stack, code_files)

    async def convert_project(self, target_stack: str, code_files: List[DiscoveredFile]) -> ConversionResult:
        entries = await run_in_threadpool(build_project_context, code_files)
        project_code = render_project_code(entries)
        prompt = build_project_prompt(target_stack, project_code)
        logger.info(
            f"Sending full project context ({len(project_code)} chars, {len(entries)} files) to the model..."
        )

        try:
            response_text = await self.model_client.complete(prompt)
        except ModelInvocationError as e:
            logger.error(f"Whole-project conversion failed: {e}")
            raise ConversionFailedError()
        logger.info("Received response from the model.")

        converted_files = parse_project_response(response_text)
        if not converted_files:
            logger.error("AI response was not in the expected format. No files were parsed.")
            raise UnparsableResponseError()

        archive = await run_in_threadpool(pack_files, converted_files)
        logger.info(f"Re-packaged {len(converted_files)} converted files.")
        included = {entry.relative_path for entry in entries}
        return ConversionResult(
            archive=archive,
            converted=[file.path for file in converted_files],
            skipped=[file.relative_path for file in code_files if file.relative_path not in included],
        )

    async def convert_files(
        self, target_stack: str, source_dir: Path, code_files: List[DiscoveredFile]
    ) -> ConversionResult:
        result = ConversionResult(archive=b"")
        for index, file in enumerate(code_files, start=1):
            content = await run_in_threadpool(read_source, file)
            if content is None:
                result.skipped.append(file.relative_path)
                continue

            logger.info(f"[{index}/{len(code_files)}] Converting {file.relative_path}")
            converted = await self._convert_one(target_stack, file, content)
            if converted is None:
                result.failed.append(file.relative_path)
                continue

            await run_in_threadpool(file.absolute_path.write_text, converted, encoding="utf-8")
            result.converted.append(file.relative_path)

        result.archive = await run_in_threadpool(pack_directory, source_dir)
        logger.info(
            f"Re-packaged project: {len(result.converted)} converted, "
            f"{len(result.failed)} kept original, {len(result.skipped)} skipped."
        )
        return result

    async def _convert_one(self, target_stack: str, file: DiscoveredFile, content: str):
        prompt = build_file_prompt(target_stack, file.absolute_path.name, content)
        try:
            response_text = await self.model_client.complete(prompt)
        except Exception as e:
            logger.error(f"Failed to convert {file.relative_path}; keeping original content: {e}")
            return None

        parsed = parse_file_response(response_text)
        if isinstance(parsed, Raw):
            if self.strict_raw_output and parsed.looks_like_prose():
                logger.warning(f"Rejecting prose-like reply for {file.relative_path}; keeping original content")
                return None
            logger.debug(f"No code fence in reply for {file.relative_path}; using raw text")
        return parsed.content
