from app.crud import engagement as crud_engagement
from app.crud import post as crud_post
from app.crud import users as crud_users
from app.db.session import SessionLocal, add_change_listener
from app.realtime.hub import Interest, LiveQueryDef, LiveQueryHub
from app.schemas.live import ExternalIdArgs, NoArgs, PostArgs, PostUserArgs, StorageIdArgs, UserPostsArgs
from app.schemas.storage import StorageUrl
from app.storage import object_store

# Author names/avatars and image URLs are joined into several results, so
# those queries also follow the users and stored_objects tables.
LIVE_QUERIES = [
    LiveQueryDef(
        name="posts.getAllPosts",
        args_model=NoArgs,
        run=lambda db, args: crud_post.get_all_posts(db),
        interest=lambda args: [Interest("posts"), Interest("users"), Interest("stored_objects")],
    ),
    LiveQueryDef(
        name="posts.getUserPosts",
        args_model=UserPostsArgs,
        run=lambda db, args: crud_post.get_user_posts(db, args.user_id),
        interest=lambda args: [Interest("posts", {"user_id": args.user_id}), Interest("stored_objects")],
    ),
    LiveQueryDef(
        name="comments.getPostComments",
        args_model=PostArgs,
        run=lambda db, args: crud_engagement.get_post_comments(db, args.post_id),
        interest=lambda args: [
            Interest("comments", {"post_id": args.post_id}),
            Interest("users"),
            Interest("stored_objects"),
        ],
    ),
    LiveQueryDef(
        name="likes.getPostLikes",
        args_model=PostArgs,
        run=lambda db, args: crud_engagement.get_post_likes(db, args.post_id),
        interest=lambda args: [Interest("likes", {"post_id": args.post_id}), Interest("users")],
    ),
    LiveQueryDef(
        name="likes.hasUserLiked",
        args_model=PostUserArgs,
        run=lambda db, args: crud_engagement.has_user_liked(db, args.post_id, args.user_id),
        interest=lambda args: [Interest("likes", {"post_id": args.post_id, "user_id": args.user_id})],
    ),
    LiveQueryDef(
        name="users.getCurrentUser",
        args_model=ExternalIdArgs,
        run=lambda db, args: crud_users.get_current_user(db, args.external_id),
        interest=lambda args: [Interest("users", {"external_id": args.external_id}), Interest("stored_objects")],
    ),
    LiveQueryDef(
        name="files.getUrl",
        args_model=StorageIdArgs,
        run=lambda db, args: StorageUrl(url=object_store.resolve(db, args.storage_id)),
        interest=lambda args: [Interest("stored_objects", {"id": args.storage_id})],
    ),
]


def build_hub(session_factory=SessionLocal) -> LiveQueryHub:
    live_hub = LiveQueryHub(session_factory)
    for query in LIVE_QUERIES:
        live_hub.register(query)
    add_change_listener(live_hub.publish)
    return live_hub


hub = build_hub()
