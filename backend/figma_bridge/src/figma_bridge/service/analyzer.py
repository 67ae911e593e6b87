import logging
from typing import List, Optional

from openai import APIError, AsyncOpenAI

from ..config import settings
from ..errors import AnalysisError, DesignSpecValidationError
from ..models.collaborators import CodeAnalysis, ComponentUsage, ScreenshotResult
from ..models.schemas import DesignSpec
from ..utils.loader import get_component_map_loader
from .validator import parse_design_spec_text

logger = logging.getLogger(settings.SERVICE_NAME + ".analyzer")

SYSTEM_PROMPT_TEMPLATE = """You are a design system expert that converts React/shadcn UI screenshots and code into a structured DesignSpec JSON format for Figma recreation.

## Your Task
Analyze the provided screenshot and React source code, then produce a JSON DesignSpec that describes the visual layout and components.

## Available shadcn Components
{components}

If a UI element uses a component not in this list, represent it as a "frame" or "rectangle" with appropriate styling.

## Tailwind Spacing -> Pixels
- 1 unit = 4px (e.g., p-4 = 16px, gap-2 = 8px, m-6 = 24px)
- text-xs: 12px, text-sm: 14px, text-base: 16px, text-lg: 18px, text-xl: 20px, text-2xl: 24px, text-3xl: 30px

## Layout Rules
- Tailwind `flex flex-col` -> autoLayout mode: "VERTICAL"
- Tailwind `flex flex-row` or just `flex` -> autoLayout mode: "HORIZONTAL"
- `items-center` -> counterAxisAlignItems: "CENTER"
- `justify-center` -> primaryAxisAlignItems: "CENTER"
- `justify-between` -> primaryAxisAlignItems: "SPACE_BETWEEN"
- `gap-N` -> spacing: N * 4

## Color Mapping (Tailwind defaults, values 0-1)
- bg-background / bg-white: {{r:1, g:1, b:1, a:1}}
- bg-primary / bg-zinc-900: {{r:0.09, g:0.09, b:0.11, a:1}}
- bg-secondary / bg-muted / bg-zinc-100: {{r:0.96, g:0.96, b:0.96, a:1}}
- bg-destructive / bg-red-500: {{r:0.94, g:0.27, b:0.27, a:1}}
- text-primary / text-foreground: {{r:0.09, g:0.09, b:0.11, a:1}}
- text-muted-foreground: {{r:0.45, g:0.45, b:0.47, a:1}}
- border color: {{r:0.90, g:0.90, b:0.92, a:1}}

## Output Format
Return ONLY valid JSON matching this structure (no markdown, no code fences):
{{
  "version": 1,
  "name": "Page Name",
  "width": <viewport width>,
  "height": <viewport height>,
  "backgroundColor": {{ "r": 1, "g": 1, "b": 1, "a": 1 }},
  "nodes": [
    {{
      "type": "frame" | "shadcn-component" | "text" | "rectangle" | "image",
      "name": "descriptive-name",
      "x": <number>, "y": <number>,
      "width": <number>, "height": <number>,
      "opacity": 1, "visible": true,
      // For frames:
      "fills": [{{ "type": "SOLID", "color": {{ "r": 0, "g": 0, "b": 0, "a": 1 }} }}],
      "autoLayout": {{ "mode": "VERTICAL", "spacing": 8 }},
      "children": [ ... ]
      // For shadcn-component:
      "componentName": "Button",
      "componentProps": {{ "variant": "outline", "size": "sm" }},
      "textContent": "Click me"
      // For text:
      "text": "Hello",
      "textStyle": {{ "fontFamily": "Inter", "fontSize": 16, "fontWeight": 400, "color": {{...}} }}
    }}
  ]
}}

## Important Rules
1. Position and size every element based on what you see in the screenshot
2. Use "shadcn-component" type for recognized shadcn components from the code
3. Preserve the exact text content from the code/screenshot
4. Create a hierarchical layout tree, using frames to group related elements
5. Every node MUST have x, y, width, height
6. Use auto-layout on frames wherever flex is used in the code
7. Keep the structure as flat as reasonable and do not over-nest"""


def build_system_prompt(supported_components: List[str]) -> str:
    components = "\n".join(f"- {name}" for name in supported_components)
    return SYSTEM_PROMPT_TEMPLATE.format(components=components)


def format_usage(usage: ComponentUsage) -> str:
    props = " ".join(key if value is True else f'{key}="{value}"' for key, value in usage.props.items() if value is not None)
    opening = f"<{usage.name} {props}>" if props else f"<{usage.name}>"
    return f"- {opening}{usage.children or ''}</{usage.name}> ({usage.source_file}:{usage.line})"


def build_user_message(screenshot: ScreenshotResult, code: CodeAnalysis, source_char_limit: int) -> str:
    if code.component_usages:
        usages = "\n".join(format_usage(u) for u in code.component_usages)
    else:
        usages = "No shadcn components detected in code."

    return (
        "Analyze this React/shadcn application and produce a DesignSpec JSON.\n\n"
        "## Screenshot Info\n"
        f"- Viewport: {screenshot.viewport_width}x{screenshot.viewport_height}\n"
        f"- Full page height: {screenshot.page_height}px\n\n"
        "## Detected shadcn Components in Code\n"
        f"{usages}\n\n"
        "## Source Code\n"
        f"```tsx\n{code.source_code[:source_char_limit]}\n```\n\n"
        "Produce the DesignSpec JSON now. Output ONLY the JSON, no other text."
    )


class DesignAnalyzer:
    """
    Asks a vision-capable model to describe a screenshot (plus the source that
    rendered it) as a DesignSpec. Responses that are not valid JSON or fail
    validation are retried a bounded number of times.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model_name: Optional[str] = None,
        max_retries: Optional[int] = None,
        supported_components: Optional[List[str]] = None,
    ):
        if client is None:
            if not settings.OPENAI_API_KEY or not settings.OPENAI_API_KEY.get_secret_value():
                logger.error("OpenAI API key is not configured.")
                raise ValueError("OPENAI_API_KEY must be set to analyze designs.")
            client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY.get_secret_value())
        self.client = client
        self.model_name = model_name or settings.AI_MODEL_NAME
        self.max_retries = settings.AI_MAX_RETRIES if max_retries is None else max_retries
        if supported_components is None:
            supported_components = get_component_map_loader().supported_components()
        self.system_prompt = build_system_prompt(supported_components)
        logger.info(f"DesignAnalyzer using model {self.model_name} with up to {self.max_retries} retries")

    async def _request(self, screenshot: ScreenshotResult, user_message: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model_name,
            max_tokens=settings.AI_MAX_TOKENS,
            messages=[
                {"role": "system", "content": self.system_prompt},
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/png;base64,{screenshot.base64}"},
                        },
                        {"type": "text", "text": user_message},
                    ],
                },
            ],
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AnalysisError("No text response from the model")
        return content

    async def analyze(self, screenshot: ScreenshotResult, code: CodeAnalysis) -> DesignSpec:
        user_message = build_user_message(screenshot, code, settings.AI_SOURCE_CHAR_LIMIT)
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                text = await self._request(screenshot, user_message)
                spec = parse_design_spec_text(text)
                logger.info(f"Model produced design spec {spec.name!r} with {len(spec.nodes)} top-level nodes")
                return spec
            except (APIError, AnalysisError, DesignSpecValidationError) as e:
                last_error = e
                if attempt < self.max_retries:
                    logger.warning(f"Retry {attempt + 1}/{self.max_retries}: {str(e)[:100]}")

        raise AnalysisError(
            f"Failed to get a valid DesignSpec from the model after {attempts} attempts: {last_error}"
        ) from last_error
