class MongoDocumentError(Exception):
    pass


class MissingCriteria(MongoDocumentError):
    pass


class MissingIdentity(MongoDocumentError):
    pass


class ImmutableIdentity(MongoDocumentError):
    pass


class EmptyInsert(MongoDocumentError):
    pass


class InsertFailed(MongoDocumentError):
    pass


class UpdateFailed(MongoDocumentError):
    pass


class UpsertFailed(MongoDocumentError):
    pass


class DeleteFailed(MongoDocumentError):
    pass


class TypeMismatch(MongoDocumentError, TypeError):
    pass


class ModelNotRegistered(MongoDocumentError, KeyError):
    # plain message, KeyError would quote it
    __str__ = Exception.__str__


class DocumentNotInitialized(MongoDocumentError):
    pass
