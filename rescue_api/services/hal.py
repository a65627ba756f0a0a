# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS Level-3 API responses with conditional affordance links.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode

from ..models.enums import RequestStatus, TeamStatus
from ..models.responses import HalLink, ErrorResponse, StatisticsResponse
from ..domain.authorization import TRIAGE_ROLES, ADMIN_ROLES

REQUESTS_PATH = "/api/rescue-requests"
TEAMS_PATH = "/api/rescue-teams"
PROBLEM_BASE_URI = "https://api.rescue-coordination.org/problems"


def _role_of(identity) -> Optional[str]:
    return identity.role if identity is not None else None


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url + '/', path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")

    def build_collection_link(self, collection_path: str) -> HalLink:
        """Build link to parent collection."""
        return self.build_link(collection_path, title="Collection")

    def build_action_link(
        self,
        resource_path: str,
        action: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build action link for a resource."""
        return self.build_link(
            f"{resource_path}/{action}",
            method=method,
            content_type="application/json",
            title=title or action.replace('-', ' ').title()
        )


class PaginationLinkBuilder:
    """Builder for pagination links in HAL collections."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def _page_link(self, base_path: str, params: Dict[str, Any], page: int, limit: int, title: str) -> HalLink:
        query = urlencode({**params, 'page': page, 'limit': limit})
        return self.link_builder.build_link(f"{base_path}?{query}", title=title)

    def build_pagination_links(
        self,
        base_path: str,
        current_page: int,
        total_pages: int,
        limit: int,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, HalLink]:
        """Build pagination links for a collection."""
        params = {k: v for k, v in (query_params or {}).items() if v is not None}
        links = {'self': self._page_link(base_path, params, current_page, limit, "Current page")}

        if current_page > 1:
            links['first'] = self._page_link(base_path, params, 1, limit, "First page")
            links['prev'] = self._page_link(base_path, params, current_page - 1, limit, "Previous page")

        if current_page < total_pages:
            links['next'] = self._page_link(base_path, params, current_page + 1, limit, "Next page")
            links['last'] = self._page_link(base_path, params, total_pages, limit, "Last page")

        return links


class AffordanceLinkBuilder:
    """Builder for conditional affordance links based on role and lifecycle state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_rescue_request_affordances(
        self,
        request_id: str,
        status: str,
        role: Optional[str],
        assigned_team_id: Optional[str] = None
    ) -> Dict[str, HalLink]:
        """Build links for a rescue request; triage actions follow its status."""
        links = {}
        base_path = f"{REQUESTS_PATH}/{request_id}"

        links['self'] = self.link_builder.build_self_link(base_path)
        links['collection'] = self.link_builder.build_collection_link(REQUESTS_PATH)

        if assigned_team_id:
            links['team'] = self.link_builder.build_link(
                f"{TEAMS_PATH}/{assigned_team_id}", title="Assigned team"
            )

        if role not in TRIAGE_ROLES:
            return links

        if status == RequestStatus.NEW.value:
            links['approve'] = self.link_builder.build_action_link(
                base_path, "approve", title="Approve rescue request"
            )
            links['reject'] = self.link_builder.build_action_link(
                base_path, "reject", title="Reject rescue request"
            )
        elif status == RequestStatus.PENDING_VERIFICATION.value:
            links['assign_team'] = self.link_builder.build_action_link(
                base_path, "assign-team", title="Assign rescue team"
            )
            links['available_teams'] = self.link_builder.build_link(
                f"{TEAMS_PATH}/available", title="Available teams"
            )
        elif status == RequestStatus.ON_MISSION.value:
            links['complete'] = self.link_builder.build_action_link(
                base_path, "complete", title="Complete mission"
            )

        links['edit'] = self.link_builder.build_link(
            base_path,
            method="PUT",
            content_type="application/json",
            title="Edit rescue request"
        )

        if role in ADMIN_ROLES:
            links['delete'] = self.link_builder.build_link(
                base_path,
                method="DELETE",
                title="Delete rescue request"
            )

        return links

    def build_rescue_team_affordances(
        self,
        team_id: str,
        status: str,
        role: Optional[str]
    ) -> Dict[str, HalLink]:
        """Build links for a rescue team."""
        links = {}
        base_path = f"{TEAMS_PATH}/{team_id}"

        links['self'] = self.link_builder.build_self_link(base_path)
        links['collection'] = self.link_builder.build_collection_link(TEAMS_PATH)

        if role in TRIAGE_ROLES:
            links['edit'] = self.link_builder.build_link(
                base_path,
                method="PUT",
                content_type="application/json",
                title="Edit rescue team"
            )

        # A team on a mission cannot be deleted
        if role in ADMIN_ROLES and status != TeamStatus.ON_MISSION.value:
            links['delete'] = self.link_builder.build_link(
                base_path,
                method="DELETE",
                title="Delete rescue team"
            )

        return links


class HalResponseBuilder:
    """Main HAL response builder."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.pagination_builder = PaginationLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    @staticmethod
    def _dump_links(links: Dict[str, HalLink]) -> Dict[str, Dict[str, Any]]:
        return {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}

    def build_resource_response(self, data: Dict[str, Any], links: Dict[str, HalLink]) -> Dict[str, Any]:
        """Attach links to a resource representation."""
        response = dict(data)
        response['_links'] = self._dump_links(links)
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        embedded_name: str,
        pagination: Dict[str, int],
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None,
        extra_links: Optional[Dict[str, HalLink]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with pagination links."""
        links = self.pagination_builder.build_pagination_links(
            collection_path,
            pagination['page'],
            pagination['total_pages'],
            pagination['limit'],
            query_params
        )
        links.update(extra_links or {})

        return {
            **pagination,
            '_links': self._dump_links(links),
            '_embedded': {embedded_name: items}
        }

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        problem = ErrorResponse(
            type=f"{PROBLEM_BASE_URI}/{error_type}",
            title=title,
            status=status,
            detail=detail,
            instance=instance,
            errors=validation_errors or None
        )
        error_response = problem.model_dump(exclude_none=True)

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )

        error_response['_links'] = self._dump_links(links)
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_rescue_request(self, rescue_request, identity=None) -> Dict[str, Any]:
        """Format a rescue request entity with HAL links."""
        data = rescue_request.model_dump(mode='json')
        links = self.builder.affordance_builder.build_rescue_request_affordances(
            data['id'], data['status'], _role_of(identity), data.get('assigned_team_id')
        )
        return self.builder.build_resource_response(data, links)

    def format_rescue_request_collection(self, page, identity=None,
                                         filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Format a page of rescue requests."""
        items = [self.format_rescue_request(item, identity) for item in page.items]
        extra_links = {
            'create': self.builder.link_builder.build_link(
                REQUESTS_PATH, method="POST", content_type="application/json", title="Submit rescue request"
            ),
            'statistics': self.builder.link_builder.build_link(
                f"{REQUESTS_PATH}/stats/summary", title="Statistics"
            )
        }
        return self.builder.build_collection_response(
            items, "rescue_requests", page.pagination, REQUESTS_PATH, filters, extra_links
        )

    def format_rescue_team(self, team, identity=None) -> Dict[str, Any]:
        """Format a rescue team (entity or detail dict) with HAL links."""
        data = team if isinstance(team, dict) else team.model_dump(mode='json')
        links = self.builder.affordance_builder.build_rescue_team_affordances(
            data['id'], data['status'], _role_of(identity)
        )
        return self.builder.build_resource_response(data, links)

    def format_rescue_team_collection(self, page, identity=None,
                                      filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Format a page of rescue teams."""
        items = [self.format_rescue_team(item, identity) for item in page.items]
        extra_links = {
            'available': self.builder.link_builder.build_link(f"{TEAMS_PATH}/available", title="Available teams")
        }
        if _role_of(identity) in ADMIN_ROLES:
            extra_links['create'] = self.builder.link_builder.build_link(
                TEAMS_PATH, method="POST", content_type="application/json", title="Create rescue team"
            )
        return self.builder.build_collection_response(
            items, "rescue_teams", page.pagination, TEAMS_PATH, filters, extra_links
        )

    def format_available_teams(self, teams: List[Any], identity=None) -> Dict[str, Any]:
        """Format the unpaginated available-teams list."""
        return {
            'count': len(teams),
            '_links': self.builder._dump_links({
                'self': self.builder.link_builder.build_self_link(f"{TEAMS_PATH}/available"),
                'collection': self.builder.link_builder.build_collection_link(TEAMS_PATH)
            }),
            '_embedded': {'rescue_teams': [self.format_rescue_team(team, identity) for team in teams]}
        }

    def format_statistics(self, statistics: Dict[str, Any]) -> Dict[str, Any]:
        """Format request statistics."""
        links = {
            'self': self.builder.link_builder.build_self_link(f"{REQUESTS_PATH}/stats/summary"),
            'collection': self.builder.link_builder.build_collection_link(REQUESTS_PATH)
        }
        return self.builder.build_resource_response(StatisticsResponse(**statistics).model_dump(), links)

    def format_error(self, error_type: str, title: str, status: int, detail: str, instance: str,
                     validation_errors: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """Format any problem document."""
        return self.builder.build_error_response(error_type, title, status, detail, instance, validation_errors)

    def format_authentication_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authentication error response."""
        return self.format_error("authentication-required", "Authentication Required", 401, detail, instance)

    def format_authorization_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authorization error response."""
        return self.format_error("insufficient-permissions", "Insufficient Permissions", 403, detail, instance)

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a server error response."""
        return self.format_error("internal-server-error", "Internal Server Error", 500, detail, instance)


# Convenience function for creating HAL formatter
def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
