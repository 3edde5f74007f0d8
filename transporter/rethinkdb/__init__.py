"""RethinkDB adaptor: table copy, change feed tail and batched writes."""