import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError

from timetracker.auth import build_pwd_context, get_password_hash
from timetracker.config import Settings, settings as default_settings
from timetracker.constants.seed_data import FALLBACK_TASK_NAMES, INITIAL_CSI_TASKS, INITIAL_JOB_ADDRESSES, INITIAL_USERS
from timetracker.constants.tables import CacheSlot, NIL_UUID, Table, UNIQUE_VIOLATION
from timetracker.schemas.csi_task import CSITask
from timetracker.schemas.job_address import JobAddress
from timetracker.schemas.stats import UserStats
from timetracker.schemas.store import Filter, OrderBy, RowId, ServiceResult, StoreError, StoreResult
from timetracker.schemas.time_entry import TimeEntry, TimeEntryCreate, TimeEntryUpdate, TimeEntryWithUser
from timetracker.schemas.user import User, UserRole
from timetracker.services import aggregation
from timetracker.services.cache_manager import CacheManager, MISS
from timetracker.services.metrics import LoggingMetrics, MetricsHook
from timetracker.services.session_manager import SessionManager
from timetracker.store.base import RemoteStoreClient
from timetracker.store.keyvalue import KeyValueStore

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# (data, error) produced by an aggregate builder
BuildOutcome = Tuple[Any, Optional[StoreError]]


def _first_error(*results: StoreResult) -> Optional[StoreError]:
    for result in results:
        if result.error:
            return result.error
    return None


def _parse_rows(model: Type[M], rows: Sequence[Dict[str, Any]]) -> List[M]:
    """Validate store rows, skipping (and logging) any that are malformed."""
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            log.warning(f"Skipping malformed {model.__name__} row {row.get('id')}: {e.error_count()} error(s)")
    return parsed


def _error(message: str, code: Optional[str] = None) -> StoreResult:
    return StoreResult(error=StoreError(message=message, code=code))


class DataService:
    """
    Facade over the remote store used by the HTTP layer.

    Reads of the three aggregates go through the CacheManager; every write
    that succeeds invalidates the whole cache before returning. Remote errors
    are returned as values, never raised.
    """

    def __init__(
        self,
        store: RemoteStoreClient,
        kv_store: KeyValueStore,
        settings: Optional[Settings] = None,
        cache: Optional[CacheManager] = None,
        metrics: Optional[MetricsHook] = None,
        pwd_context: Optional[CryptContext] = None,
    ):
        self.settings = settings or default_settings
        self.store = store
        self.cache = cache or CacheManager(ttl=self.settings.cache_ttl_seconds)
        self.metrics = metrics or LoggingMetrics()
        self.pwd_context = pwd_context or build_pwd_context(self.settings.bcrypt_rounds)
        self.session = SessionManager(
            store,
            kv_store,
            session_key=self.settings.session_key,
            pwd_context=self.pwd_context,
        )

    # Lifecycle

    async def initialize(self) -> Optional[User]:
        """Seed an empty store (when enabled) and restore any persisted session."""
        if self.settings.seed_on_initialize:
            await self.seed_defaults()
        return await self.session.restore_session()

    async def close(self) -> None:
        await self.store.close()

    async def seed_defaults(self) -> StoreResult:
        existing = await self.store.fetch_rows(Table.USERS, columns="id", limit=1)
        if existing.error:
            log.error(f"Could not check for existing users: {existing.error.message}")
            return existing
        if existing.rows:
            log.debug("Users already exist, skipping seeding")
            return StoreResult()

        users = await self.store.insert_rows(Table.USERS, [
            {
                "username": u["username"],
                "password_hash": get_password_hash(u["password"], self.pwd_context),
                "name": u["name"],
                "role": u["role"],
            }
            for u in INITIAL_USERS
        ])
        if users.error:
            log.error(f"Error creating initial users: {users.error.message}")
            return users
        log.info(f"Initial users created: {len(users.rows)} users")

        addresses = await self.store.insert_rows(Table.JOB_ADDRESSES, [
            {"address": address, "user_id": row["id"]}
            for row in users.rows
            for address in INITIAL_JOB_ADDRESSES
        ])
        if addresses.error:
            log.error(f"Error creating initial job addresses: {addresses.error.message}")
            return addresses

        tasks = await self.store.fetch_rows(Table.CSI_TASKS, columns="id", limit=1)
        if not tasks.error and not tasks.rows:
            tasks = await self.store.insert_rows(Table.CSI_TASKS, [{"name": name} for name in INITIAL_CSI_TASKS])
        if tasks.error:
            log.error(f"Error creating initial CSI tasks: {tasks.error.message}")
            return tasks

        self._invalidate()
        log.info("Initial job addresses and CSI tasks created")
        return StoreResult()

    # Cache plumbing

    def _invalidate(self) -> None:
        self.cache.invalidate_all()
        self.metrics.increment("cache.invalidate")

    async def _write(self, operation: str, mutation: Awaitable[StoreResult]) -> StoreResult:
        """Run a remote mutation; invalidate on success, hand the result back as is."""
        result = await mutation
        if result.error:
            self.metrics.increment("store.error", operation=operation)
            log.error(f"{operation} failed: {result.error.message}")
        else:
            self._invalidate()
        return result

    async def _cached_read(
        self,
        slot: CacheSlot,
        force_refresh: bool,
        build: Callable[[], Awaitable[BuildOutcome]],
        empty: Callable[[], Any],
    ) -> ServiceResult:
        if not force_refresh:
            cached = self.cache.read(slot)
            if cached is not MISS:
                self.metrics.increment("cache.hit", slot=slot.value)
                log.debug(f"Returning cached {slot.value}")
                return ServiceResult(data=cached)

        self.metrics.increment("cache.miss", slot=slot.value)
        log.debug(f"Cache miss or expired for {slot.value}, fetching fresh data")
        generation = self.cache.generation
        with self.metrics.timer("aggregate.duration", slot=slot.value):
            data, error = await build()

        if error is None:
            if self.cache.generation == generation:
                self.cache.write(slot, data)
            else:
                # A write landed while rebuilding; this result may predate it
                self.metrics.increment("cache.write_skipped", slot=slot.value)
                log.debug(f"Not caching {slot.value}, the cache was invalidated during the rebuild")
            return ServiceResult(data=data)

        self.metrics.increment("store.error", operation=slot.value)
        log.error(f"Error rebuilding {slot.value}: {error.message}")
        stale = self.cache.read_stale(slot)
        if stale is not MISS:
            self.metrics.increment("cache.stale_served", slot=slot.value)
            log.warning(f"Returning stale cached {slot.value} due to error (age {self.cache.peek_age(slot):.0f}s)")
            return ServiceResult(data=stale, stale=True)
        return ServiceResult(data=empty(), error=error)

    # Aggregate reads

    async def _build_all_users_aggregate(self) -> BuildOutcome:
        users, entries, addresses = await asyncio.gather(
            self.store.fetch_rows(Table.USERS),
            self.store.fetch_rows(Table.TIME_ENTRIES),
            self.store.fetch_rows(Table.JOB_ADDRESSES),
        )
        error = _first_error(users, entries, addresses)
        if error:
            return None, error
        if not users.rows:
            log.warning("No users found in the store")
        aggregate = aggregation.compute_all_users_aggregate(
            _parse_rows(User, users.rows),
            _parse_rows(TimeEntry, entries.rows),
            _parse_rows(JobAddress, addresses.rows),
        )
        return aggregate, None

    async def get_all_users_aggregate(self, force_refresh: bool = False) -> ServiceResult:
        """Per-user totals keyed by username (`Dict[str, UserAggregate]`)."""
        return await self._cached_read(CacheSlot.ALL_USERS_DATA, force_refresh, self._build_all_users_aggregate, dict)

    async def _build_task_catalog(self) -> BuildOutcome:
        tasks, entries = await asyncio.gather(
            self.store.fetch_rows(Table.CSI_TASKS, order_by=[OrderBy(column="name")]),
            self.store.fetch_rows(Table.TIME_ENTRIES, columns="id,duration,user_id,csi_division"),
        )
        error = _first_error(tasks, entries)
        if error:
            return None, error
        parsed_tasks = _parse_rows(CSITask, tasks.rows)
        parsed_entries = _parse_rows(TimeEntry, entries.rows)
        log.debug(f"Processing {len(parsed_tasks)} CSI tasks with {len(parsed_entries)} total time entries")
        return aggregation.compute_task_usage_stats(parsed_tasks, parsed_entries), None

    async def get_task_catalog_with_stats(self, force_refresh: bool = False) -> ServiceResult:
        """CSI task catalog ordered by name, each task with usage statistics."""
        return await self._cached_read(CacheSlot.CSI_TASKS, force_refresh, self._build_task_catalog, list)

    async def _build_job_addresses(self) -> BuildOutcome:
        result = await self.store.fetch_rows(Table.JOB_ADDRESSES, columns="address", order_by=[OrderBy(column="address")])
        if result.error:
            return None, result.error
        return aggregation.deduplicate_addresses(result.rows), None

    async def get_deduplicated_job_addresses(self, force_refresh: bool = False) -> ServiceResult:
        """Every distinct job address label across all users."""
        return await self._cached_read(CacheSlot.ALL_JOB_ADDRESSES, force_refresh, self._build_job_addresses, list)

    async def get_user_stats(self, user_id: RowId) -> ServiceResult:
        """
        Stats for one user. Not cached itself; served from the all-users
        aggregate when that slot is warm.
        """
        cached = self.cache.read(CacheSlot.ALL_USERS_DATA)
        if cached is not MISS:
            for item in cached.values():
                if item.user.id == user_id:
                    self.metrics.increment("cache.hit", slot="userStats")
                    return ServiceResult(data=item.stats)

        entries, addresses = await asyncio.gather(
            self.store.fetch_rows(Table.TIME_ENTRIES, filters=[Filter(column="user_id", value=user_id)]),
            self.store.fetch_rows(Table.JOB_ADDRESSES, filters=[Filter(column="user_id", value=user_id)]),
        )
        error = _first_error(entries, addresses)
        if error:
            self.metrics.increment("store.error", operation="userStats")
            log.error(f"Error getting stats for user {user_id}: {error.message}")
            return ServiceResult(data=UserStats(), error=error)
        stats = aggregation.compute_user_stats(
            _parse_rows(TimeEntry, entries.rows),
            _parse_rows(JobAddress, addresses.rows),
        )
        return ServiceResult(data=stats)

    async def get_available_task_names(self) -> ServiceResult:
        """Task names for entry forms; never fails, falls back to a fixed list."""
        catalog = await self.get_task_catalog_with_stats()
        if not catalog.error and catalog.data:
            return ServiceResult(data=[t.name for t in catalog.data if t.name])

        log.warning("CSI task catalog unavailable, falling back to a direct query")
        result = await self.store.fetch_rows(Table.CSI_TASKS, columns="name", order_by=[OrderBy(column="name")])
        if result.error:
            log.error(f"Error in get_available_task_names: {result.error.message}")
            return ServiceResult(data=list(FALLBACK_TASK_NAMES))
        return ServiceResult(data=[row["name"] for row in result.rows if row.get("name")])

    # Plain reads

    async def get_time_entries(self, user_id: RowId, limit: Optional[int] = 50) -> ServiceResult:
        result = await self.store.fetch_rows(
            Table.TIME_ENTRIES,
            filters=[Filter(column="user_id", value=user_id)],
            order_by=[OrderBy(column="date", ascending=False), OrderBy(column="start_time", ascending=False)],
            limit=limit,
        )
        if result.error:
            return ServiceResult(data=[], error=result.error)
        return ServiceResult(data=_parse_rows(TimeEntry, result.rows))

    async def get_all_time_entries(self, limit: Optional[int] = 100) -> ServiceResult:
        """Entries across all users, newest first, with the owner's name/email/role joined in."""
        entries, users = await asyncio.gather(
            self.store.fetch_rows(
                Table.TIME_ENTRIES,
                order_by=[OrderBy(column="date", ascending=False), OrderBy(column="start_time", ascending=False)],
                limit=limit,
            ),
            self.store.fetch_rows(Table.USERS, columns="id,name,username,role"),
        )
        error = _first_error(entries, users)
        if error:
            return ServiceResult(data=[], error=error)

        users_by_id = {row.get("id"): row for row in users.rows}
        joined = []
        for row in entries.rows:
            owner = users_by_id.get(row.get("user_id"), {})
            joined.append({
                **row,
                "user_name": owner.get("name"),
                "user_email": owner.get("username"),
                "user_role": owner.get("role"),
            })
        return ServiceResult(data=_parse_rows(TimeEntryWithUser, joined))

    async def get_job_addresses(self, user_id: Optional[RowId]) -> ServiceResult:
        if not user_id:
            log.warning("get_job_addresses called without a user id")
            return ServiceResult(data=[])
        result = await self.store.fetch_rows(
            Table.JOB_ADDRESSES,
            filters=[Filter(column="user_id", value=user_id)],
            order_by=[OrderBy(column="address")],
        )
        if result.error:
            return ServiceResult(data=[], error=result.error)
        return ServiceResult(data=[a for a in _parse_rows(JobAddress, result.rows) if a.address])

    # Time entry writes

    async def add_time_entry(self, user_id: RowId, entry: TimeEntryCreate) -> StoreResult:
        row = {"user_id": user_id, **entry.model_dump(mode="json")}
        return await self._write("add_time_entry", self.store.insert_rows(Table.TIME_ENTRIES, [row]))

    async def edit_time_entry(self, user_id: RowId, entry_id: RowId, entry: TimeEntryUpdate) -> StoreResult:
        patch = entry.model_dump(mode="json", exclude_unset=True)
        if not patch:
            return _error("No fields to update.")
        return await self._write("edit_time_entry", self.store.update_rows(
            Table.TIME_ENTRIES,
            patch,
            [Filter(column="id", value=entry_id), Filter(column="user_id", value=user_id)],
        ))

    async def delete_time_entry(self, user_id: RowId, entry_id: RowId) -> StoreResult:
        return await self._write("delete_time_entry", self.store.delete_rows(
            Table.TIME_ENTRIES,
            [Filter(column="id", value=entry_id), Filter(column="user_id", value=user_id)],
        ))

    # Job address writes

    async def add_job_address(self, user_id: Optional[RowId], address: Optional[str]) -> StoreResult:
        if not user_id:
            return _error("Invalid user ID")
        if not isinstance(address, str) or not address.strip():
            return _error("Address cannot be empty")
        return await self._write("add_job_address", self.store.insert_rows(
            Table.JOB_ADDRESSES, [{"address": address.strip(), "user_id": user_id}]
        ))

    async def delete_job_address(self, user_id: Optional[RowId], address_id: Optional[RowId]) -> StoreResult:
        if not user_id:
            return _error("Invalid user ID")
        if not address_id:
            return _error("Invalid address ID")
        return await self._write("delete_job_address", self.store.delete_rows(
            Table.JOB_ADDRESSES,
            [Filter(column="id", value=address_id), Filter(column="user_id", value=user_id)],
        ))

    # CSI task writes

    async def add_csi_task(self, name: str) -> StoreResult:
        if not name or not name.strip():
            return _error("Task name cannot be empty")
        result = await self._write("add_csi_task", self.store.insert_rows(Table.CSI_TASKS, [{"name": name.strip()}]))
        if result.error and result.error.code == UNIQUE_VIOLATION:
            return StoreResult(error=StoreError(message="Task already exists.", code=UNIQUE_VIOLATION, details=result.error.details))
        return result

    async def edit_csi_task(self, task_id: RowId, new_name: str) -> StoreResult:
        """
        Rename a catalog task. Existing time entries keep the old division
        string; renames do not cascade.
        """
        if not new_name or not new_name.strip():
            return _error("Task name cannot be empty")
        result = await self._write("edit_csi_task", self.store.update_rows(
            Table.CSI_TASKS, {"name": new_name.strip()}, [Filter(column="id", value=task_id)]
        ))
        if result.error and result.error.code == UNIQUE_VIOLATION:
            return StoreResult(error=StoreError(message="Task name already exists.", code=UNIQUE_VIOLATION, details=result.error.details))
        return result

    async def delete_csi_task(self, task_id: RowId) -> StoreResult:
        return await self._write("delete_csi_task", self.store.delete_rows(Table.CSI_TASKS, [Filter(column="id", value=task_id)]))

    # Users and session

    @property
    def current_user(self) -> Optional[User]:
        return self.session.current_user

    async def restore_session(self) -> Optional[User]:
        return await self.session.restore_session()

    async def sign_in(self, username: str, password: str) -> ServiceResult:
        return await self.session.sign_in(username, password)

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """Verify credentials for a caller that keeps its own principal (HTTP bearer tokens)."""
        return await self.session.authenticate(username, password)

    async def get_user(self, user_id: RowId) -> Optional[User]:
        return await self.session.get_user(user_id)

    async def sign_out(self) -> ServiceResult:
        return self.session.sign_out()

    async def _insert_user(self, username: str, password: str, name: str, role: UserRole) -> StoreResult:
        existing = await self.store.fetch_rows(Table.USERS, filters=[Filter(column="username", value=username)], columns="id", limit=1)
        if existing.error:
            return StoreResult(error=existing.error)
        if existing.rows:
            return _error("User already exists.")
        password_hash = await asyncio.to_thread(get_password_hash, password, self.pwd_context)
        return await self._write("create_user", self.store.insert_rows(Table.USERS, [{
            "username": username,
            "password_hash": password_hash,
            "name": name,
            "role": UserRole(role).value,
        }]))

    async def sign_up(self, username: str, password: str, name: str = "New User") -> StoreResult:
        return await self._insert_user(username, password, name, UserRole.USER)

    async def create_user(
        self,
        username: str,
        password: str,
        name: str,
        role: UserRole = UserRole.USER,
        actor: Optional[User] = None,
    ) -> StoreResult:
        """
        Admin-only user creation; the new user gets the default job addresses.
        `actor` is the requesting principal, defaulting to the signed-in session user.
        """
        actor = actor or self.current_user
        if not actor or actor.role != UserRole.ADMIN:
            return _error("Admin access required.")

        result = await self._insert_user(username, password, name, role)
        if result.error or not result.rows:
            return result

        new_user_id = result.rows[0]["id"]
        addresses = await self.store.insert_rows(
            Table.JOB_ADDRESSES, [{"address": address, "user_id": new_user_id} for address in INITIAL_JOB_ADDRESSES]
        )
        self._invalidate()
        if addresses.error:
            log.error(f"Created user {username} but could not add default job addresses: {addresses.error.message}")
            self.metrics.increment("store.error", operation="create_user_addresses")
            return StoreResult(rows=result.rows, error=StoreError(
                message=f"User created, but default job addresses could not be added: {addresses.error.message}",
                code=addresses.error.code,
                details=addresses.error.details,
            ))
        return result

    async def clear_all_data(self) -> StoreResult:
        """Delete entries, addresses and users, sign out, then re-seed the defaults."""
        everything = [Filter(column="id", value=NIL_UUID, op="neq")]
        for table in (Table.TIME_ENTRIES, Table.JOB_ADDRESSES, Table.USERS):
            result = await self._write(f"clear_{table.value}", self.store.delete_rows(table, everything))
            if result.error:
                return result

        self.session.sign_out()
        self._invalidate()
        seeded = await self.seed_defaults()
        if seeded.ok:
            log.info("All data cleared and defaults re-initialized.")
        return seeded
