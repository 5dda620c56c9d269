"""
Agent Control Loop - drives the browser with the planner model.

States:
    INIT -> AWAIT_PLAN -> (ACT -> AWAIT_PLAN)* -> DRAIN -> DONE
    any failure in INIT / AWAIT_PLAN / ACT -> ERROR (raised as one BrowserError)

The browser is driven strictly sequentially by this task. Every screenshot taken
after an action is handed to the curl-generation stage without waiting; a
follow-up task per job persists the extracted resources and fans out one
embeddings job per resource. DRAIN joins all of that before returning.
"""

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional

from docgen.browser.actions import ActionExecutor, BrowserAction, settle
from docgen.browser.session import BrowserSession, start_browser, take_screenshot, to_data_url
from docgen.core.config import Settings, get_settings
from docgen.core.exceptions import BrowserError, JobFailedError
from docgen.core.logging_config import log_crawl_step
from docgen.core.progress import ProgressEmitter, get_progress_emitter
from docgen.jobs.queue import Job, JobQueue
from docgen.jobs.stages import CURL_STAGE, EMBEDDINGS_STAGE
from docgen.knowledge.embeddings import Embedder
from docgen.knowledge.store import KnowledgeStore
from docgen.knowledge.writer import KnowledgeBaseWriter, SiteCache, docs_to_inputs
from docgen.llm.client import CompletionResponse, LLMClient
from docgen.llm.prompts import BROWSER_USE_PROMPT
from docgen.llm.schemas import computer_use_tool

logger = logging.getLogger(__name__)

BrowserFactory = Callable[[str], AsyncContextManager[BrowserSession]]


class CrawlState(str, Enum):
    INIT = "init"
    AWAIT_PLAN = "await_plan"
    ACT = "act"
    DRAIN = "drain"
    DONE = "done"
    ERROR = "error"


class CrawlLoop:
    """
    One crawl of one documentation site.

    Collaborators are injected so the loop can run against fakes:
        loop = CrawlLoop(llm, queue, writer, session_id="abc")
        curl_objs = await loop.run("https://docs.example.com")
    """

    def __init__(
        self,
        llm: LLMClient,
        queue: JobQueue,
        writer: KnowledgeBaseWriter,
        session_id: Optional[str] = None,
        executor: Optional[ActionExecutor] = None,
        progress: Optional[ProgressEmitter] = None,
        settings: Optional[Settings] = None,
        browser_factory: Optional[BrowserFactory] = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm
        self.queue = queue
        self.writer = writer
        self.session_id = session_id
        self.run_id = session_id or uuid.uuid4().hex[:12]
        self.executor = executor or ActionExecutor(self.settings.crawl)
        self.progress = progress or get_progress_emitter()
        self.browser_factory = browser_factory or start_browser

        self.state = CrawlState.INIT
        self.action_count = 0
        self.job_index = 0
        self.curl_jobs: List[Job] = []
        self.follow_ups: List[asyncio.Task] = []
        self._extractor_response_id: Optional[str] = None
        self._tools = [
            computer_use_tool(self.settings.browser.display_width, self.settings.browser.display_height)
        ]

    @property
    def planner_model(self) -> str:
        return self.settings.openai.planner_model

    async def run(self, url: str) -> List[Dict[str, Any]]:
        """Crawl `url` until the planner stops; return the collected curl payloads."""
        start = time.time()
        self.state = CrawlState.INIT
        logger.info(f"[CrawlLoop] [{self.run_id}] Starting crawl of {url}")

        try:
            async with self.browser_factory(url) as session:
                response = await self._plan_initial(session.page)
                self.state = CrawlState.AWAIT_PLAN

                while True:
                    self._emit_reasoning(response)
                    calls = response.items_of_type("computer_call")
                    if not calls:
                        logger.info(f"[CrawlLoop] [{self.run_id}] No more computer calls")
                        break
                    if self._budget_exhausted():
                        logger.warning(
                            f"[CrawlLoop] [{self.run_id}] Step budget of "
                            f"{self.settings.crawl.max_steps} reached, stopping"
                        )
                        break

                    self.state = CrawlState.ACT
                    response = await self._act(session.page, response, calls[0], url)
                    self.state = CrawlState.AWAIT_PLAN
        except Exception as e:
            self.state = CrawlState.ERROR
            logger.error(f"[CrawlLoop] [{self.run_id}] Crawl of {url} failed: {e}")
            if isinstance(e, BrowserError):
                raise
            raise BrowserError("Browser automation loop failed", cause=e) from e

        collected = await self._drain()
        self.state = CrawlState.DONE
        logger.info(
            f"[CrawlLoop] [{self.run_id}] Done: {self.action_count} actions, "
            f"{len(self.curl_jobs)} extraction jobs, {len(collected)} payloads "
            f"in {time.time() - start:.1f}s"
        )
        return collected

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _plan_initial(self, page) -> CompletionResponse:
        screenshot = to_data_url(await take_screenshot(page, self.settings.browser))
        planner_input = [
            {
                "role": "user",
                "content": [
                    {"type": "input_text", "text": BROWSER_USE_PROMPT},
                    {"type": "input_image", "image_url": screenshot},
                ],
            }
        ]
        return await self.llm.request_completion(self.planner_model, self._tools, planner_input)

    def _emit_reasoning(self, response: CompletionResponse) -> None:
        for item in response.items_of_type("reasoning"):
            summary = item.get("summary")
            logger.info(f"[CrawlLoop] [{self.run_id}] Reasoning: {summary}")
            self.progress.send_reasoning(self.session_id, summary)

    def _budget_exhausted(self) -> bool:
        max_steps = self.settings.crawl.max_steps
        return max_steps > 0 and self.action_count >= max_steps

    async def _act(
        self,
        page,
        response: CompletionResponse,
        call: Dict[str, Any],
        url: str,
    ) -> CompletionResponse:
        step_start = time.time()
        raw_action = call.get("action") or {}
        action = BrowserAction.from_dict(raw_action)

        self.action_count += 1
        self.progress.send_action(self.session_id, raw_action, self.action_count)

        await self.executor.execute(page, action)
        await settle(self.executor, action)

        screenshot = to_data_url(await take_screenshot(page, self.settings.browser))
        self.progress.send_screenshot(self.session_id, screenshot)

        call_output: Dict[str, Any] = {
            "call_id": call.get("call_id"),
            "type": "computer_call_output",
            "output": {"type": "input_image", "image_url": screenshot},
        }
        safety_checks = [
            check
            for item in response.items_of_type("computer_call")
            for check in item.get("pending_safety_checks") or []
        ]
        if safety_checks:
            logger.warning(f"[CrawlLoop] [{self.run_id}] Acknowledging {len(safety_checks)} safety checks")
            call_output["acknowledged_safety_checks"] = [
                {"id": check.get("id"), "code": check.get("code"), "message": check.get("message")}
                for check in safety_checks
            ]

        next_response = await self.llm.request_completion(
            self.planner_model,
            self._tools,
            [call_output],
            reasoning={"summary": "concise"},
            previous_response_id=response.id,
        )

        self._submit_extraction(screenshot, url)
        log_crawl_step(
            logger, self.run_id, self.action_count, action.name, (time.time() - step_start) * 1000
        )
        return next_response

    def _submit_extraction(self, screenshot: str, url: str) -> None:
        self.job_index += 1
        job = self.queue.enqueue(
            CURL_STAGE,
            {
                "screenshot": screenshot,
                "previous_response_id": self._extractor_response_id,
                "job_index": self.job_index,
                "total_jobs": self.job_index,
                "session_id": self.session_id,
                "url": url,
            },
            job_id=f"curl-{self.run_id}-{self.job_index}",
        )
        self.curl_jobs.append(job)
        self.progress.send_curl_progress(self.session_id, "queued", self.job_index, jobId=job.id)
        self.follow_ups.append(
            asyncio.create_task(self._follow_up(job, url), name=f"follow-up-{job.id}")
        )

    async def _follow_up(self, job: Job, url: str) -> int:
        """Persist the job's documents and wait for their embeddings. Returns resources written."""
        try:
            result = await self.queue.wait_for(job)
        except JobFailedError as e:
            logger.error(f"[CrawlLoop] [{self.run_id}] {e.message}")
            return 0

        if result.get("success") and result.get("response_id"):
            self._extractor_response_id = result["response_id"]

        docs = (result.get("curl_obj") or {}).get("curl_docs") or []
        if not docs:
            return 0

        try:
            resources = self.writer.create_resources_without_embeddings(docs_to_inputs(docs, url))
        except Exception as e:
            logger.error(f"[CrawlLoop] [{self.run_id}] Failed to persist resources for {job.id}: {e}")
            self.progress.send_embedding_progress(self.session_id, "error", jobId=job.id, message=str(e))
            return 0

        logger.info(f"[CrawlLoop] [{self.run_id}] {job.id}: created {len(resources)} resources, queuing embeddings")
        self.progress.send_embedding_progress(
            self.session_id, "start", jobId=job.id, count=len(resources)
        )

        embedding_jobs = [
            self.queue.enqueue(
                EMBEDDINGS_STAGE,
                {
                    "resource_id": resource.id,
                    "content": resource.content,
                    "job_index": idx + 1,
                    "total_jobs": len(resources),
                },
                job_id=f"embeddings-{resource.id}",
            )
            for idx, resource in enumerate(resources)
        ]
        outcomes = await asyncio.gather(
            *(self.queue.wait_for(j) for j in embedding_jobs), return_exceptions=True
        )
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        if failures:
            logger.error(
                f"[CrawlLoop] [{self.run_id}] {len(failures)}/{len(embedding_jobs)} embeddings jobs "
                f"failed for {job.id}: {failures[0]}"
            )
            self.progress.send_embedding_progress(
                self.session_id, "error", jobId=job.id, failed=len(failures), message=str(failures[0])
            )
        else:
            self.progress.send_embedding_progress(
                self.session_id, "complete", jobId=job.id, count=len(resources)
            )
        return len(resources)

    async def _drain(self) -> List[Dict[str, Any]]:
        self.state = CrawlState.DRAIN
        logger.info(
            f"[CrawlLoop] [{self.run_id}] Draining {len(self.curl_jobs)} curl jobs "
            f"and {len(self.follow_ups)} follow-ups"
        )

        results = await asyncio.gather(
            *(self.queue.wait_for(job) for job in self.curl_jobs), return_exceptions=True
        )
        collected = []
        for job, result in zip(self.curl_jobs, results):
            if isinstance(result, BaseException):
                logger.error(f"[CrawlLoop] [{self.run_id}] Error waiting for {job.id}: {result}")
                continue
            if result.get("success") and result.get("curl_obj"):
                collected.append(result["curl_obj"])

        for task, outcome in zip(
            self.follow_ups, await asyncio.gather(*self.follow_ups, return_exceptions=True)
        ):
            if isinstance(outcome, BaseException):
                logger.error(f"[CrawlLoop] [{self.run_id}] {task.get_name()} failed: {outcome}")

        return collected


async def crawl_site(
    url: str,
    *,
    llm: LLMClient,
    queue: JobQueue,
    store: KnowledgeStore,
    embedder: Embedder,
    session_id: Optional[str] = None,
    progress: Optional[ProgressEmitter] = None,
    settings: Optional[Settings] = None,
    browser_factory: Optional[BrowserFactory] = None,
) -> List[Dict[str, Any]]:
    """Run one crawl with a fresh writer and site cache."""
    writer = KnowledgeBaseWriter(store, embedder, SiteCache())
    loop = CrawlLoop(
        llm,
        queue,
        writer,
        session_id=session_id,
        progress=progress,
        settings=settings,
        browser_factory=browser_factory,
    )
    return await loop.run(url)
