from unittest.mock import MagicMock, patch

import requests

from app.services.social_media_poster import SocialMediaPoster

CONFIG = {
    'FACEBOOK_ACCESS_TOKEN': 'tok',
    'FACEBOOK_PAGE_ID': 'page-1',
    'INSTAGRAM_BUSINESS_ACCOUNT_ID': 'ig-1',
    'PUBLIC_BASE_URL': 'https://example.test/',
    'GRAPH_API_BASE_URL': 'https://graph.example.test',
    'GRAPH_API_VERSION': 'v18.0',
    'INSTAGRAM_PUBLISH_DELAY': 5,
    'SOCIAL_REQUEST_TIMEOUT': 10,
}


def response(status=200, payload=None):
    resp = MagicMock()
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.text = str(payload)
    resp.json.return_value = payload or {}
    return resp


class TestFacebook:

    def test_posts_absolute_url(self):
        poster = SocialMediaPoster(config=CONFIG)
        with patch('app.services.social_media_poster.requests.post', return_value=response(payload={'id': 'fb-1'})) as post:
            assert poster.post_to_facebook('/attached_assets/composites/a.webp', 'caption') == 'fb-1'

        url = post.call_args.args[0]
        body = post.call_args.kwargs['json']
        assert url == 'https://graph.example.test/v18.0/page-1/photos'
        assert body['url'] == 'https://example.test/attached_assets/composites/a.webp'
        assert body['access_token'] == 'tok'
        assert post.call_args.kwargs['timeout'] == 10

    def test_missing_credentials(self):
        poster = SocialMediaPoster(config={**CONFIG, 'FACEBOOK_ACCESS_TOKEN': ''})
        with patch('app.services.social_media_poster.requests.post') as post:
            assert poster.post_to_facebook('https://x/a.jpg', 'c') is None
        post.assert_not_called()

    def test_upstream_error(self):
        poster = SocialMediaPoster(config=CONFIG)
        with patch('app.services.social_media_poster.requests.post', return_value=response(400, {'error': 'bad'})):
            assert poster.post_to_facebook('https://x/a.jpg', 'c') is None

    def test_network_error(self):
        poster = SocialMediaPoster(config=CONFIG)
        with patch('app.services.social_media_poster.requests.post', side_effect=requests.ConnectionError('down')):
            assert poster.post_to_facebook('https://x/a.jpg', 'c') is None


class TestInstagram:

    def test_container_then_publish(self):
        sleeps = []
        poster = SocialMediaPoster(config=CONFIG, sleep=sleeps.append)
        replies = [response(payload={'id': 'container-9'}), response(payload={'id': 'ig-post-3'})]
        with patch('app.services.social_media_poster.requests.post', side_effect=replies) as post:
            assert poster.post_to_instagram('https://cdn/a.jpg', 'caption') == 'ig-post-3'

        assert sleeps == [5]
        first, second = post.call_args_list
        assert first.args[0].endswith('/ig-1/media')
        assert first.kwargs['json']['image_url'] == 'https://cdn/a.jpg'
        assert second.args[0].endswith('/ig-1/media_publish')
        assert second.kwargs['json']['creation_id'] == 'container-9'

    def test_failed_container_stops(self):
        poster = SocialMediaPoster(config=CONFIG, sleep=lambda s: None)
        with patch('app.services.social_media_poster.requests.post', return_value=response(500)) as post:
            assert poster.post_to_instagram('https://cdn/a.jpg', 'c') is None
        assert post.call_count == 1

    def test_account_lookup(self):
        poster = SocialMediaPoster(config={**CONFIG, 'INSTAGRAM_BUSINESS_ACCOUNT_ID': None})
        lookup = response(payload={'instagram_business_account': {'id': 'ig-found'}})
        with patch('app.services.social_media_poster.requests.get', return_value=lookup) as get:
            assert poster.get_instagram_business_account() == 'ig-found'
            assert poster.get_instagram_business_account() == 'ig-found'
        assert get.call_count == 1
        assert get.call_args.kwargs['params']['fields'] == 'instagram_business_account'

    def test_no_linked_account(self):
        poster = SocialMediaPoster(config={**CONFIG, 'INSTAGRAM_BUSINESS_ACCOUNT_ID': None})
        with patch('app.services.social_media_poster.requests.get', return_value=response(payload={})):
            with patch('app.services.social_media_poster.requests.post') as post:
                assert poster.post_to_instagram('https://cdn/a.jpg', 'c') is None
        post.assert_not_called()


class TestPostToAll:

    def test_partial_success(self):
        poster = SocialMediaPoster(config=CONFIG, sleep=lambda s: None)
        replies = [response(payload={'id': 'fb-7'}), response(500)]
        with patch('app.services.social_media_poster.requests.post', side_effect=replies):
            result = poster.post_to_all('https://cdn/a.jpg', 'c')
        assert result == {'facebook_post_id': 'fb-7', 'instagram_post_id': None}
