# caterpillar-clay

The core of a small online pottery shop: settings read from the
environment, the shop's data models on top of an `sqlite3` connection,
a family of application errors that map to HTTP status codes and JSON
bodies, and the checks that guard incoming requests (authentication,
admin access and per-client rate limiting).

The package has no third-party dependencies.

## Configuration

`caterpillar_clay.config.Config.from_env(environ=None)` builds a frozen
`Config` from a mapping (by default `os.environ`).

- `TESTING_MODE=true` makes the keys that differ between test and
  production (`DATABASE_URL`, `TURSO_AUTH_TOKEN`, `CLERK_SECRET_KEY`,
  `CLERK_PUBLISHABLE_KEY`, `STRIPE_SECRET_KEY`, `STRIPE_PUBLISHABLE_KEY`,
  `SHIPPO_API_KEY`) be read with a `_TEST` suffix first; otherwise the
  `_PROD` suffix is tried first. Either way the plain name is the
  fallback.
- `DEPLOY_MODE` is parsed by `DeployMode.parse`: `cloud`, `production`
  and `prod` (in any case) mean `DeployMode.CLOUD`, anything else
  `DeployMode.LOCAL`. In testing mode it chooses between
  `STRIPE_WEBHOOK_SECRET_TEST_LOCAL` and `STRIPE_WEBHOOK_SECRET_TEST_CLOUD`
  (falling back to `STRIPE_WEBHOOK_SECRET_TEST`); in production
  `STRIPE_WEBHOOK_SECRET_PROD` is read. A missing webhook secret is an
  empty string.
- `CLERK_JWKS_URL` and `SMTP_PASS` are read as named and are required,
  as are the suffixed `CLERK_PUBLISHABLE_KEY`, `DATABASE_URL`,
  `CLERK_SECRET_KEY`, `STRIPE_SECRET_KEY` and `SHIPPO_API_KEY`. A missing
  required value raises `ConfigError`, whose `name` attribute holds the
  variable's name.
- `PORT` defaults to 3000 and `RATE_LIMIT_GENERAL`, `RATE_LIMIT_AUTH`
  and `RATE_LIMIT_CHECKOUT` to 60; a value that is not an unsigned
  number in range falls back to the default.
- Other settings have plain defaults: `SMTP_HOST` (`smtp.resend.com`),
  `SMTP_USER` (`resend`), `STORAGE_TYPE` (`local`), `UPLOAD_DIR`
  (`./static/uploads`), `BASE_URL` (`http://localhost:3000`). The
  `R2_*`, `RESEND_API_KEY` and `UPSTASH_REDIS_URL` values are `None`
  when unset.

```python
from caterpillar_clay.config import Config

config = Config.from_env({
    "CLERK_PUBLISHABLE_KEY": "placeholder",
    "CLERK_JWKS_URL": "https://example.com/.well-known/jwks.json",
    "DATABASE_URL": "file:shop.db",
    "CLERK_SECRET_KEY": "secret",
    "STRIPE_SECRET_KEY": "secret",
    "SHIPPO_API_KEY": "placeholder",
    "SMTP_PASS": "password",
    "DEPLOY_MODE": "prod",
})
print(config.port, config.deploy_mode.is_cloud())  # 3000 True
```

## Models

Every model works through class methods that take an open
`sqlite3.Connection` as their first argument. Writes are committed as
they happen; `sqlite3` errors are raised as `DatabaseError`.

```python
from caterpillar_clay.models.user import CreateUser, User
from caterpillar_clay.models.newsletter import NewsletterSubscriber

user = User.upsert(conn, CreateUser(clerk_id="user_1", email="ann@example.com", name="Ann"))
admin = User.set_admin(conn, user.id, True)

subscriber = NewsletterSubscriber.subscribe(conn, "Ann@Example.com")
assert subscriber.email == "ann@example.com"
NewsletterSubscriber.unsubscribe_by_token(conn, subscriber.unsubscribe_token)
```

- `caterpillar_clay.models.user`: `User` (`find_by_clerk_id`,
  `find_by_id`, `create`, `upsert`, `set_admin`, `uuid`), `CreateUser`.
- `caterpillar_clay.models.settings`: `Setting` (`get`, `set`,
  `get_artist_info`, `get_shop_address`, `get_unit_system`),
  `ArtistInfo`, `ShopAddress`. `get_shop_address` returns `None` until
  `shop_street1` is set; the unit system defaults to `metric`.
- `caterpillar_clay.models.newsletter`: `NewsletterSubscriber`
  (`subscribe`, `unsubscribe_by_token`, `unsubscribe_by_email`,
  `find_by_email`, `get_all`, `count`). Addresses are stored in lower
  case and subscribing twice returns the existing subscription.
- `caterpillar_clay.models.product`: `Product` (`list_active`,
  `list_all`, `find_by_id`, `create`, `update`, `set_image`,
  `set_stripe_ids`, `delete`, `decrement_stock`, `increment_stock`,
  `uuid`), `CreateProduct`, `UpdateProduct` (fields left `None` keep
  their value) and `ProductImage` (`list_by_product`, `add`, `delete`,
  `delete_by_product`, `reorder`, `find_by_id`, `update_path`).
  `decrement_stock` leaves the stock unchanged when there is not enough.
- `caterpillar_clay.models.product_style`: `ProductStyle` (`create`,
  `get_by_product`, `get_by_id`, `update`, `update_stock`, `delete`,
  `reorder`, `get_restocked_styles`); lookups fill in `image_path` from
  the linked product image.
- `caterpillar_clay.models.order`: `Order` (`find_by_id`,
  `find_by_stripe_session`, `find_by_payment_intent`,
  `set_payment_intent`, `list_by_user`, `list_all`, `create`,
  `set_stripe_session`, `update_status`, `set_tracking`, `set_label`,
  `get_items`, `count_all`, `total_revenue`, `uuid`,
  `parsed_shipping_address`, `order_status`), `OrderItem`,
  `CreateOrder`, `CreateOrderItem`, `ShippingAddress` (stored as JSON)
  and `OrderStatus` (`parse` returns `None` for an unknown status).
  `set_tracking` marks an order shipped, `set_label` marks it
  processing; `total_revenue` leaves out pending and cancelled orders.
- `caterpillar_clay.models.product_notification`: `ProductNotification`
  for back-in-stock requests (`subscribe`, `find_pending`,
  `get_pending_for_product`, `get_pending_for_styles`, `mark_notified`,
  `mark_all_notified_for_product`, `count_pending_for_product`,
  `cleanup_old_notified`).

Lookups return `None` (or an empty list) when nothing matches. Methods
that return the changed row raise `NotFoundError` when the row is
missing.

## Errors

`caterpillar_clay.error.AppError` is the base of `DatabaseError`,
`NotFoundError` (404), `UnauthorizedError` (401), `ForbiddenError`
(403), `BadRequestError` (400), `InternalError` (500),
`ExternalServiceError` (502) and `StorageError` (500); `DatabaseError`
is a 500 as well. `to_response()` logs the error and returns
`(status, {"error": message})`; a `DatabaseError` always answers with
the message `"Database error"`, never its details.

## Request guards

```python
from caterpillar_clay.middleware.auth import authenticate, require_admin
from caterpillar_clay.middleware.rate_limit import RateLimitExceeded, enforce_rate_limit

headers = {"Authorization": "Bearer token"}
user = authenticate(conn, headers, verify_token)
require_admin(user)

try:
    enforce_rate_limit(headers, limiter)
except RateLimitExceeded as exc:
    status, body = exc.to_response()  # 429, {"error": "Too many requests", "retry_after": 60}
```

- `extract_token(headers)` takes the token from a `Bearer`
  `Authorization` header and falls back to the `__session` cookie.
  Header names are matched without regard to case.
- `authenticate(conn, headers, verify_token)` calls `verify_token` with
  the token; it must return `ClerkClaims` or raise. The claims' `sub` is
  looked up as the user's clerk id and an `AuthUser` is returned.
  Missing tokens, rejected tokens and unknown users raise
  `UnauthorizedError`; database failures raise `InternalError`.
- `require_admin(user)` raises `UnauthorizedError` for `None` and
  `ForbiddenError` for a user who is not an administrator.
- `client_ip(headers)` uses the first address in `X-Forwarded-For`,
  then `X-Real-IP`, then `"unknown"`.
- `enforce_rate_limit(headers, limiter)` asks any object with a
  `check_rate_limit(key) -> bool` method. With no limiter, or when the
  limiter raises, the request is let through.

## What the package does not do

It is a library, not a running shop. It has no HTTP server or routes
and no command to start one; the guards take plain header mappings and
leave wiring into a web framework to you. It does not create the
database tables the models use, and it has no database migrations. It
does not verify session tokens itself (you pass `verify_token`), ships
no rate limiter backend, and does not send e-mail, store uploads, take
payments or buy shipping labels; the configuration only carries the
settings for such services.