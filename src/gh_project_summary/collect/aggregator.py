"""Merge per-repository fetch results into flat arrays plus indexes.

Arrays keep repository order, then per-repository fetch order; nothing is
sorted. ``build_indexes`` is a pure function of the arrays, so the same code
builds the indexes and verifies them.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence

from gh_project_summary.collect.fetcher import FetchResult
from gh_project_summary.models import (
    AggregatedData,
    Indexes,
    ItemReference,
    ItemType,
    ProjectInfo,
    RawData,
)

logger = logging.getLogger(__name__)


class InvariantViolation(Exception):
    """Raised when aggregated data is internally inconsistent.

    This always indicates a bug, never bad input from GitHub.
    """


def aggregate(results: Sequence[FetchResult], project: ProjectInfo | None = None) -> AggregatedData:
    """Concatenate fetch results and build indexes.

    Args:
        results: Fetch results in repository (discovery) order.
        project: Board the repositories came from, if any.

    Returns:
        AggregatedData with raw arrays and indexes.
    """
    raw = RawData(project=project)
    for result in results:
        raw.repositories.append(result.repository)
        raw.issues.extend(result.issues)
        raw.pull_requests.extend(result.pull_requests)
        raw.commits.extend(result.commits)
        raw.issue_comments.extend(result.issue_comments)
        raw.pr_reviews.extend(result.pr_reviews)
        raw.pr_review_comments.extend(result.pr_review_comments)

    indexes = build_indexes(raw)
    logger.debug("Aggregated %s", raw.item_counts())
    return AggregatedData(raw=raw, indexes=indexes)


def build_indexes(raw: RawData) -> Indexes:
    """Build every lookup table over the raw arrays.

    Args:
        raw: Flat raw arrays.

    Returns:
        Indexes whose positions refer into ``raw``.
    """
    issues_by_repo: defaultdict[str, list[int]] = defaultdict(list)
    prs_by_repo: defaultdict[str, list[int]] = defaultdict(list)
    commits_by_repo: defaultdict[str, list[int]] = defaultdict(list)
    items_by_author: defaultdict[str, list[ItemReference]] = defaultdict(list)
    items_by_label: defaultdict[str, list[ItemReference]] = defaultdict(list)
    comments_by_issue: defaultdict[str, list[int]] = defaultdict(list)
    reviews_by_pr: defaultdict[str, list[int]] = defaultdict(list)
    review_comments_by_pr: defaultdict[str, list[int]] = defaultdict(list)

    def by_author(author: str | None, index: int, repo: str, kind: ItemType) -> None:
        if author:
            items_by_author[author].append(
                ItemReference(index=index, repository_name=repo, type=kind)
            )

    for i, issue in enumerate(raw.issues):
        issues_by_repo[issue.repository_name].append(i)
        by_author(issue.author, i, issue.repository_name, "issue")
        for label in issue.labels:
            items_by_label[label].append(
                ItemReference(index=i, repository_name=issue.repository_name, type="issue")
            )

    for i, pull in enumerate(raw.pull_requests):
        prs_by_repo[pull.repository_name].append(i)
        by_author(pull.author, i, pull.repository_name, "pull_request")
        for label in pull.labels:
            items_by_label[label].append(
                ItemReference(index=i, repository_name=pull.repository_name, type="pull_request")
            )

    for i, commit in enumerate(raw.commits):
        commits_by_repo[commit.repository_name].append(i)
        by_author(commit.author, i, commit.repository_name, "commit")

    for i, comment in enumerate(raw.issue_comments):
        comments_by_issue[str(comment.parent_id)].append(i)
        by_author(comment.author, i, comment.repository_name, "comment")

    for i, review in enumerate(raw.pr_reviews):
        reviews_by_pr[str(review.parent_id)].append(i)
        by_author(review.author, i, review.repository_name, "review")

    for i, comment in enumerate(raw.pr_review_comments):
        review_comments_by_pr[str(comment.parent_id)].append(i)
        by_author(comment.author, i, comment.repository_name, "review_comment")

    return Indexes(
        issues_by_repo=dict(issues_by_repo),
        prs_by_repo=dict(prs_by_repo),
        commits_by_repo=dict(commits_by_repo),
        items_by_author=dict(items_by_author),
        items_by_label=dict(items_by_label),
        comments_by_issue=dict(comments_by_issue),
        reviews_by_pr=dict(reviews_by_pr),
        review_comments_by_pr=dict(review_comments_by_pr),
    )


def _array_for(raw: RawData, kind: ItemType) -> Sequence[object]:
    return {
        "issue": raw.issues,
        "pull_request": raw.pull_requests,
        "commit": raw.commits,
        "comment": raw.issue_comments,
        "review": raw.pr_reviews,
        "review_comment": raw.pr_review_comments,
    }[kind]


def verify_indexes(raw: RawData, indexes: Indexes) -> None:
    """Check that indexes match the raw arrays exactly.

    Every position must be in bounds and point at a record of the kind and
    repository the index claims, and the indexes must equal a fresh build.

    Raises:
        InvariantViolation: On the first inconsistency found.
    """
    per_repo = (
        ("issues_by_repo", indexes.issues_by_repo, raw.issues),
        ("prs_by_repo", indexes.prs_by_repo, raw.pull_requests),
        ("commits_by_repo", indexes.commits_by_repo, raw.commits),
    )
    for index_name, table, array in per_repo:
        for repo, positions in table.items():
            for position in positions:
                if not 0 <= position < len(array):
                    msg = f"{index_name}[{repo}] position {position} out of bounds"
                    raise InvariantViolation(msg)
                if array[position].repository_name != repo:
                    msg = f"{index_name}[{repo}] position {position} belongs to another repository"
                    raise InvariantViolation(msg)

    per_parent = (
        ("comments_by_issue", indexes.comments_by_issue, raw.issue_comments),
        ("reviews_by_pr", indexes.reviews_by_pr, raw.pr_reviews),
        ("review_comments_by_pr", indexes.review_comments_by_pr, raw.pr_review_comments),
    )
    for index_name, table, children in per_parent:
        for parent_id, positions in table.items():
            for position in positions:
                if not 0 <= position < len(children):
                    msg = f"{index_name}[{parent_id}] position {position} out of bounds"
                    raise InvariantViolation(msg)
                if str(children[position].parent_id) != parent_id:
                    msg = f"{index_name}[{parent_id}] position {position} has another parent"
                    raise InvariantViolation(msg)

    for index_name, references in (
        ("items_by_author", indexes.items_by_author),
        ("items_by_label", indexes.items_by_label),
    ):
        for key, refs in references.items():
            for ref in refs:
                array = _array_for(raw, ref.type)
                if not 0 <= ref.index < len(array):
                    msg = f"{index_name}[{key}] {ref.type} index {ref.index} out of bounds"
                    raise InvariantViolation(msg)
                if getattr(array[ref.index], "repository_name", None) != ref.repository_name:
                    msg = f"{index_name}[{key}] {ref.type} index {ref.index} repository mismatch"
                    raise InvariantViolation(msg)

    if build_indexes(raw) != indexes:
        msg = "indexes differ from a rebuild over the raw arrays"
        raise InvariantViolation(msg)


def verify_references(raw: RawData) -> None:
    """Check repository and parent references of every child record.

    Raises:
        InvariantViolation: If a repository appears twice, a record names an
            uncollected repository, or a comment or review names a parent
            missing from the result.
    """
    seen: set[str] = set()
    for repo in raw.repositories:
        key = repo.full_name.lower()
        if key in seen:
            msg = f"repository {repo.full_name} appears more than once"
            raise InvariantViolation(msg)
        seen.add(key)

    repositories = {repo.full_name for repo in raw.repositories}
    issue_ids = {issue.id for issue in raw.issues}
    pull_ids = {pull.id for pull in raw.pull_requests}

    children = (
        ("issues", raw.issues),
        ("pull_requests", raw.pull_requests),
        ("commits", raw.commits),
        ("issue_comments", raw.issue_comments),
        ("pr_reviews", raw.pr_reviews),
        ("pr_review_comments", raw.pr_review_comments),
    )
    for kind, records in children:
        for record in records:
            if record.repository_name not in repositories:
                msg = f"{kind} record references unknown repository {record.repository_name}"
                raise InvariantViolation(msg)

    for comment in raw.issue_comments:
        if comment.parent_id not in issue_ids:
            msg = f"issue comment {comment.id} references missing issue {comment.parent_id}"
            raise InvariantViolation(msg)
    for review in raw.pr_reviews:
        if review.parent_id not in pull_ids:
            msg = f"review {review.id} references missing pull request {review.parent_id}"
            raise InvariantViolation(msg)
    for comment in raw.pr_review_comments:
        if comment.parent_id not in pull_ids:
            msg = f"review comment {comment.id} references missing pull request {comment.parent_id}"
            raise InvariantViolation(msg)
