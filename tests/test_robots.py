import pytest
import requests

from web_harvester.core.errors import RobotsRestrictionError, RobotsStatusError
from web_harvester.core.harvester import Harvester
from web_harvester.core.rules import Rules
from web_harvester.fetch.robots import RobotsTxt, parser_from_response

from .conftest import TEXT

ROBOTS = "User-agent: *\nDisallow: /private\n\nUser-agent: badbot\nDisallow: /\n"


def test_successful_response_is_parsed():
    parser = parser_from_response(200, ROBOTS.encode())
    assert parser.can_fetch("web-harvester/1.0", "http://example.com/public")
    assert not parser.can_fetch("web-harvester/1.0", "http://example.com/private/page")
    assert not parser.can_fetch("badbot/2.0", "http://example.com/public")


def test_client_error_allows_everything():
    parser = parser_from_response(404, b"")
    assert parser.can_fetch("any", "http://example.com/private")


@pytest.mark.parametrize("status", [500, 503])
def test_server_error_disallows_everything(status):
    parser = parser_from_response(status, b"")
    assert not parser.can_fetch("any", "http://example.com/")


@pytest.mark.parametrize("status", [101, 301, 302])
def test_unexpected_status_raises(status):
    with pytest.raises(RobotsStatusError) as exc_info:
        parser_from_response(status, b"", "http://example.com/robots.txt")
    assert exc_info.value.status_code == status


@pytest.fixture
def robots_harvester(transport, robots):
    transport.add("http://example.com/robots.txt", ROBOTS, TEXT)
    transport.add("http://example.com/public", "ok", TEXT)
    transport.add("http://example.com/private", "secret", TEXT)
    return Harvester(transport=transport, robots=robots)


def test_denied_url_raises(robots_harvester):
    with pytest.raises(RobotsRestrictionError) as exc_info:
        robots_harvester.do(Rules(url="http://example.com/private"))
    assert exc_info.value.url == "http://example.com/private"


def test_robots_is_fetched_once_per_host(robots_harvester, transport):
    robots_harvester.do(Rules(url="http://example.com/public"))
    with pytest.raises(RobotsRestrictionError):
        robots_harvester.do(Rules(url="http://example.com/private"))
    with pytest.raises(RobotsRestrictionError):
        robots_harvester.do(Rules(url="http://example.com/private"))

    assert transport.urls().count("http://example.com/robots.txt") == 1
    assert "http://example.com/private" not in transport.urls()


def test_robots_fetch_uses_get_and_rules_user_agent(robots_harvester, transport):
    rules = Rules(method="POST", url="http://example.com/public")
    rules.header.set("User-Agent", "badbot/2.0")

    with pytest.raises(RobotsRestrictionError):
        robots_harvester.do(rules)

    robots_request = transport.requests[0]
    assert robots_request['url'] == "http://example.com/robots.txt"
    assert robots_request['method'] == "GET"
    assert robots_request['user_agent'] == "badbot/2.0"


def test_ignore_robots_txt_skips_the_check(robots_harvester, transport):
    robots_harvester.do(Rules(url="http://example.com/private", ignore_robots_txt=True))
    assert transport.urls() == ["http://example.com/private"]


def test_robots_path_is_exempt(robots_harvester, transport):
    response = robots_harvester.do(Rules(url="http://example.com/robots.txt"))
    assert response.status_code == 200
    assert transport.urls() == ["http://example.com/robots.txt"]


def test_missing_robots_allows_everything(transport, robots):
    transport.add("http://example.org/robots.txt", "not found", TEXT, status=404)
    transport.add("http://example.org/anything", "ok", TEXT)
    harvester = Harvester(transport=transport, robots=robots)

    assert harvester.do(Rules(url="http://example.org/anything")).status_code == 200


def test_redirected_robots_fails_the_request(transport, robots):
    transport.add("http://moved.example/robots.txt", "", TEXT, status=301)
    transport.add("http://moved.example/page", "ok", TEXT)
    harvester = Harvester(transport=transport, robots=robots)

    with pytest.raises(RobotsStatusError):
        harvester.do(Rules(url="http://moved.example/page"))

    assert "http://moved.example/page" not in transport.urls()
    assert robots.get_stats()["cached_hosts"] == 0


def test_cache_key_ignores_host_case(robots_harvester, transport, robots):
    robots_harvester.do(Rules(url="http://example.com/public"))
    with pytest.raises(RobotsRestrictionError):
        robots_harvester.do(Rules(url="http://EXAMPLE.com/private"))

    assert robots.get_stats()["hosts"] == ["example.com"]
    assert transport.urls().count("http://example.com/robots.txt") == 1


def test_robots_fetch_failure_propagates(transport, robots):
    harvester = Harvester(transport=transport, robots=robots)
    with pytest.raises(requests.ConnectionError):
        harvester.do(Rules(url="http://unreachable.example/"))


def test_clear_forgets_cached_hosts(robots_harvester, transport, robots):
    robots_harvester.do(Rules(url="http://example.com/public"))
    assert robots.get_stats()['cached_hosts'] == 1

    robots.clear()
    robots_harvester.do(Rules(url="http://example.com/public"))

    assert robots.get_stats()['hosts'] == ["example.com"]
    assert transport.urls().count("http://example.com/robots.txt") == 2
