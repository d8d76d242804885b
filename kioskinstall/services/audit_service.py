import logging
from typing import Callable, List, Optional, Sequence

from openai import OpenAI

from kioskinstall.domain.project import CapturedImage
from kioskinstall.utils.image_utils import split_data_url

logger = logging.getLogger(__name__)

MAX_AUDIT_IMAGES = 3

AUDIT_PROMPT = (
    "You are a Quality Assurance inspector for kiosk installations.\n"
    "Review these \"After Installation\" photos. Check for:\n"
    "1. Cleanliness of the area.\n"
    "2. Proper alignment of the kiosk.\n"
    "3. Visibility of screens/signage.\n"
    "4. Any obvious damage or poor workmanship.\n\n"
    "Provide a brief summary (max 100 words) and a PASS/FAIL recommendation."
)

MISSING_KEY_MESSAGE = "API Key missing. Cannot perform AI audit."
NO_IMAGES_MESSAGE = "No images available for audit."
NO_RESPONSE_MESSAGE = "No response generated."
FAILED_MESSAGE = "AI Audit failed. Please check network or API quota."


def default_client_factory(api_key: str, timeout: float):
    return OpenAI(api_key=api_key, timeout=timeout, max_retries=0)


class AuditRequester:
    """
    Ask a hosted multimodal model for a short QA verdict on installation photos.

    Every failure mode resolves to a returned message; nothing is raised.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = 'gpt-4o-mini',
        timeout: float = 60,
        client_factory: Callable = default_client_factory,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.client_factory = client_factory

    @staticmethod
    def select_image_urls(images: Sequence[CapturedImage]) -> List[str]:
        """First three images only; anything that is not a base64 image is dropped."""
        urls = []
        for image in list(images)[:MAX_AUDIT_IMAGES]:
            try:
                split_data_url(image.data_url)
            except ValueError:
                logger.warning(f"Skipping image {image.id} in audit: not an encoded image")
                continue
            urls.append(image.data_url)
        return urls

    @staticmethod
    def build_messages(image_urls: List[str]) -> list:
        content = [{"type": "image_url", "image_url": {"url": url}} for url in image_urls]
        content.append({"type": "text", "text": AUDIT_PROMPT})
        return [{"role": "user", "content": content}]

    def request_audit(self, images: Sequence[CapturedImage]) -> str:
        if not self.api_key:
            return MISSING_KEY_MESSAGE

        image_urls = self.select_image_urls(images)
        if not image_urls:
            return NO_IMAGES_MESSAGE

        try:
            client = self.client_factory(self.api_key, self.timeout)
            response = client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(image_urls),
                max_tokens=300,
            )
            text = response.choices[0].message.content if response.choices else None
        except Exception as e:
            logger.error(f"AI audit request failed: {e}", exc_info=True)
            return FAILED_MESSAGE

        if not text or not text.strip():
            return NO_RESPONSE_MESSAGE
        logger.info(f"AI audit completed over {len(image_urls)} images")
        return text.strip()
